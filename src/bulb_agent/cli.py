"""CLI entry point for the bulb agent."""

import argparse
import logging
import sys

from .bulb import BulbStore
from .config import AgentConfig, ConfigError, load_config, merge_cli_args, validate_config
from .registration import RegistrationClient, RegistrationError
from .server import create_agent_server

logger = logging.getLogger(__name__)


def _parse_level(raw: str) -> int:
    raw = raw.strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=_parse_level(level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _build_config(args) -> AgentConfig:
    """Build an AgentConfig from a config file + CLI overrides."""
    if args.config:
        config = load_config(args.config)
    else:
        config = AgentConfig()
    merge_cli_args(config, args)
    validate_config(config)
    return config


def run_agent(config: AgentConfig) -> int:
    """Register with the hub, then serve until interrupted.

    Returns the process exit code.
    """
    store = BulbStore(config.initial_bulb())

    client = RegistrationClient(
        config.hub_url,
        store,
        retry_interval=config.retry_interval,
        timeout=config.request_timeout,
    )
    try:
        client.register()
    except RegistrationError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted before registration completed")
        return 130

    # The listener is bound only once registration is done
    try:
        server = create_agent_server(store, host=config.host, port=config.port)
    except OSError as exc:
        logger.error("Cannot listen on %s:%d: %s", config.host or "*", config.port, exc)
        return 1

    logger.info("Bulb agent listening on %s:%d", config.host or "*", config.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        server.server_close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bulb-agent",
        description="Smart bulb agent: serves bulb state over HTTP and registers with a hub",
    )
    parser.add_argument(
        "hub_url", nargs="?", default=None, metavar="hub-url",
        help="Base URL of the hub to register with (default: http://localhost:9393)",
    )
    parser.add_argument("--config", type=str, help="Path to YAML config file")
    parser.add_argument(
        "--host", type=str, default=None,
        help="Address to listen on (default: all interfaces)",
    )
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: 9494)")
    parser.add_argument(
        "--retry-interval", type=float, dest="retry_interval", default=None,
        help="Seconds between hub reachability checks (default: 2)",
    )
    parser.add_argument(
        "--request-timeout", type=float, dest="request_timeout", default=None,
        help="Timeout in seconds for each request to the hub (default: 10)",
    )
    parser.add_argument(
        "--log-level", type=str, dest="log_level", default=None,
        help="Logging level, e.g. DEBUG or INFO (default: $BULB_AGENT_LOG_LEVEL or INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = _build_config(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _configure_logging(config.resolved_log_level())
    sys.exit(run_agent(config))


if __name__ == "__main__":
    main()
