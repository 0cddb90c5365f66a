import pytest

from devchain.config import ChainConfig, load_config
from devchain.errors import ConfigError


def test_defaults():
    config = load_config(env={})
    assert config == ChainConfig()
    assert config.port == 8545
    assert config.binary == "anvil"
    assert config.probe_attempts == 15
    assert config.poll_interval == 0.25
    assert config.rpc_timeout is None


def test_precedence_file_env_overrides(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text("chain:\n  port: 9000\n  binary: /opt/anvil\n  preload_state: false\n")

    config = load_config(path, env={"DEVCHAIN_PORT": "9100"}, binary="custom-anvil", verbose=None)

    assert config.port == 9100
    assert config.binary == "custom-anvil"
    assert config.preload_state is False
    assert config.verbose is False


def test_env_boolean_strings():
    config = ChainConfig().merged({"verbose": "yes", "preload_state": "0"})
    assert config.verbose is True
    assert config.preload_state is False


def test_unknown_key_rejected(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text("chain:\n  colour: blue\n")
    with pytest.raises(ConfigError):
        load_config(path, env={})


def test_missing_chain_section(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigError):
        load_config(path, env={})


def test_invalid_values():
    with pytest.raises(ConfigError):
        load_config(env={"DEVCHAIN_PORT": "not-a-port"})
    with pytest.raises(ConfigError):
        ChainConfig(port=70000)
    with pytest.raises(ConfigError):
        ChainConfig(poll_interval=0)


def test_missing_file():
    with pytest.raises(ConfigError):
        load_config("/nonexistent/chain.yaml", env={})


def test_relative_cache_dir_resolves_against_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config(env={"DEVCHAIN_CACHE": "cache"})
    assert config.cache_path.is_absolute()
    assert config.cache_path == (tmp_path / "cache").resolve()
