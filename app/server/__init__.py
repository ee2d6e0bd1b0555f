from .bootstrap import build_services
from .http import create_app
from .lifecycle import LifecycleCoordinator, ServerState

__all__ = ["LifecycleCoordinator", "ServerState", "build_services", "create_app"]
