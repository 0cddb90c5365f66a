import argparse
import logging
import sys

from devchain.config import load_config
from devchain.errors import Cancelled, ChainError
from devchain.lifecycle import execute


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Start a local development chain, seed it and keep it running until interrupted.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", type=str, help="YAML file with a 'chain' section")
    parser.add_argument("--port", type=int, help="Port the chain RPC listens on (default 8545)")
    parser.add_argument("--binary", type=str, help="Chain executable to launch (default anvil)")
    parser.add_argument("--cache-dir", type=str, help="Directory for cached state snapshots and chain logs")
    parser.add_argument("--attempts", type=int, help="Readiness probes before giving up on a spawned chain")
    parser.add_argument(
        "--no-snapshot",
        action="store_true",
        help="Do not preload the state snapshot; attach to or spawn a plain chain and bootstrap it instead.",
    )
    parser.add_argument("--state-file", type=str, help="Snapshot to preload instead of the packaged one")
    parser.add_argument("--verbose", action="store_true", help="Show the chain's own output")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    args = parse_args(argv)
    logging.getLogger().setLevel(args.log_level.upper())

    try:
        config = load_config(
            args.config,
            port=args.port,
            binary=args.binary,
            cache_dir=args.cache_dir,
            probe_attempts=args.attempts,
            preload_state=False if args.no_snapshot else None,
            state_file=args.state_file,
            verbose=True if args.verbose else None,
        )
        reason = execute(config)
    except Cancelled:
        logging.info("Interrupted before the chain was ready.")
        return 130
    except ChainError as e:
        logging.error("%s", e)
        return 1

    logging.info("Chain stopped (%s).", reason)
    return 0


if __name__ == "__main__":
    sys.exit(main())
