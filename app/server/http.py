import logging
from typing import Sequence

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.types import Scope

from ..config.config import AppConfig
from ..infra.ratelimit import RateLimiter
from ..security.headers import SecurityHeadersMiddleware
from ..security.sanitize import SanitizeMiddleware
from ..tours import router as tours_router
from ..users import router as users_router
from .error_handlers import register_error_handlers
from .middleware import RateLimitMiddleware, log_requests, stamp_request_time
from .models import HealthResponse

logger = logging.getLogger(__name__)

RouteGroup = tuple[str, APIRouter]


class PublicFiles(StaticFiles):
	"""Static files mounted at the root; anything but a read falls through to the not-found reply."""

	async def get_response(self, path: str, scope: Scope):
		if scope["method"] not in ("GET", "HEAD"):
			raise StarletteHTTPException(status_code=404)
		return await super().get_response(path, scope)


def default_route_groups() -> list[RouteGroup]:
	return [
		("/api/v1/tours", tours_router),
		("/api/v1/users", users_router),
	]


def _install_middleware(app: FastAPI, cfg: AppConfig, limiter: RateLimiter) -> None:
	# Starlette wraps each new middleware around the ones already added, so this
	# list runs innermost first: CORS ends up seeing every request before anything else.
	app.add_middleware(GZipMiddleware, minimum_size=1000)
	app.add_middleware(SanitizeMiddleware, max_body_bytes=cfg.body_limit_bytes, param_whitelist=cfg.param_whitelist)
	app.add_middleware(RateLimitMiddleware, limiter=limiter, prefix="/api", trust_proxy=cfg.trust_proxy)
	if cfg.is_development:
		app.add_middleware(BaseHTTPMiddleware, dispatch=log_requests)
	app.add_middleware(SecurityHeadersMiddleware)
	app.add_middleware(BaseHTTPMiddleware, dispatch=stamp_request_time)
	allow_all = "*" in cfg.cors_origins
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"] if allow_all else cfg.cors_origins,
		allow_credentials=not allow_all,
		allow_methods=["*"],
		allow_headers=["*"],
	)


def create_app(cfg: AppConfig, route_groups: Sequence[RouteGroup] | None = None, limiter: RateLimiter | None = None) -> FastAPI:
	app = FastAPI(title="Natours API", debug=False)
	app.state.config = cfg
	app.state.rate_limiter = limiter or RateLimiter(cfg.rate_limit_max, cfg.rate_limit_window)
	_install_middleware(app, cfg, app.state.rate_limiter)

	@app.get("/health", response_model=HealthResponse)
	async def health(request: Request) -> HealthResponse:
		lifecycle = getattr(request.app.state, "lifecycle", None)
		state = lifecycle.state.value if lifecycle is not None else "unmanaged"
		return HealthResponse(status="ok", state=state)

	for prefix, router in (route_groups if route_groups is not None else default_route_groups()):
		app.include_router(router, prefix=prefix)

	# Mounted after the API so /api/* always takes precedence.
	if cfg.static_dir.is_dir():
		app.mount("/", PublicFiles(directory=str(cfg.static_dir)), name="static")
		logger.debug("Serving static files from %s", cfg.static_dir)

	register_error_handlers(app, development=cfg.is_development)
	return app
