import logging
import os


def configure_logging(level: str | None = None) -> logging.Logger:
	level_name = (level or os.environ.get("LOG_LEVEL", "DEBUG")).upper()
	logging.basicConfig(level=level_name, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
	logging.getLogger().setLevel(level_name)
	# pymongo's heartbeat chatter drowns everything at DEBUG
	logging.getLogger("pymongo").setLevel(max(logging.getLogger().level, logging.INFO))
	return logging.getLogger()
