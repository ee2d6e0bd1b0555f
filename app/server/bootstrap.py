from ..config.config import AppConfig
from ..storage.database import MongoConnection
from .http import create_app
from .lifecycle import LifecycleCoordinator


def build_services(cfg: AppConfig) -> LifecycleCoordinator:
    store = MongoConnection(cfg.database_url, database=cfg.database_name, timeout_ms=cfg.database_timeout_ms)
    app = create_app(cfg)
    return LifecycleCoordinator(cfg, app, store)
