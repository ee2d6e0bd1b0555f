import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from app.config.config import AppConfig, ConfigurationError
from app.config.logging_config import configure_logging
from app.server.bootstrap import build_services
from app.storage.database import MongoConnection

_LOGGER = logging.getLogger("app")


def _load_config() -> AppConfig:
	try:
		cfg = AppConfig()
	except ConfigurationError as e:
		configure_logging()
		_LOGGER.critical("Invalid configuration: %s", e)
		sys.exit(1)
	configure_logging(cfg.log_level)
	return cfg


def cmd_serve(args: argparse.Namespace) -> None:
	cfg = _load_config()
	if args.port is not None:
		if not 1 <= args.port <= 65535:
			_LOGGER.critical("Invalid --port %d", args.port)
			sys.exit(1)
		cfg.port = args.port
	coordinator = build_services(cfg)
	asyncio.run(coordinator.run())


def cmd_check_config(args: argparse.Namespace) -> None:
	cfg = _load_config()
	for key, value in cfg.describe().items():
		print(f"{key}\t{value}")


def cmd_ping_db(args: argparse.Namespace) -> None:
	cfg = _load_config()
	store = MongoConnection(cfg.database_url, database=cfg.database_name, timeout_ms=cfg.database_timeout_ms)
	try:
		asyncio.run(store.connect())
	except Exception as e:
		print(f"MongoDB connection failed: {e}")
		sys.exit(1)
	finally:
		store.close()
	print(f"MongoDB reachable, database={cfg.database_name}")


def build_arg_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Natours REST API server")
	sub = parser.add_subparsers(dest="command", required=True)

	p_srv = sub.add_parser("serve", help="Connect to MongoDB, then run the HTTP server")
	p_srv.add_argument("--port", type=int, help="Override PORT")
	p_srv.set_defaults(func=cmd_serve)

	p_cfg = sub.add_parser("check-config", help="Print the resolved configuration (password masked)")
	p_cfg.set_defaults(func=cmd_check_config)

	p_ping = sub.add_parser("ping-db", help="Check that the configured MongoDB answers")
	p_ping.set_defaults(func=cmd_ping_db)
	return parser


def main() -> None:
	parser = build_arg_parser()
	args = parser.parse_args()
	args.func(args)


if __name__ == "__main__":
	main()
