import run_chain
from devchain.errors import Cancelled, StartupTimeout


def test_main_passes_cli_overrides(monkeypatch, tmp_path):
    seen = {}

    def fake_execute(config):
        seen["config"] = config
        return "signal"

    monkeypatch.setattr(run_chain, "execute", fake_execute)
    monkeypatch.delenv("DEVCHAIN_PORT", raising=False)

    code = run_chain.main(
        ["--port", "9545", "--no-snapshot", "--cache-dir", str(tmp_path), "--verbose"]
    )

    assert code == 0
    config = seen["config"]
    assert config.port == 9545
    assert config.preload_state is False
    assert config.verbose is True
    assert config.cache_dir == str(tmp_path)


def test_main_reports_chain_errors(monkeypatch):
    def failing_execute(config):
        raise StartupTimeout(config.port, config.probe_attempts)

    monkeypatch.setattr(run_chain, "execute", failing_execute)
    assert run_chain.main([]) == 1


def test_main_cancelled_exit_code(monkeypatch):
    def cancelled_execute(config):
        raise Cancelled("interrupted")

    monkeypatch.setattr(run_chain, "execute", cancelled_execute)
    assert run_chain.main([]) == 130
