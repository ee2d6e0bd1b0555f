import logging
import time
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from ..infra.ratelimit import RateLimiter, client_ip

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again in an hour!"


async def stamp_request_time(request: Request, call_next: RequestResponseEndpoint) -> Response:
	request.state.request_time = datetime.now(timezone.utc).isoformat()
	return await call_next(request)


async def log_requests(request: Request, call_next: RequestResponseEndpoint) -> Response:
	start = time.perf_counter()
	response = await call_next(request)
	elapsed_ms = (time.perf_counter() - start) * 1000
	logger.info("%s %s %d %.3f ms", request.method, request.url.path, response.status_code, elapsed_ms)
	return response


class RateLimitMiddleware(BaseHTTPMiddleware):
	def __init__(self, app: ASGIApp, limiter: RateLimiter, prefix: str = "/api", trust_proxy: bool = False) -> None:
		super().__init__(app)
		self.limiter = limiter
		self.prefix = prefix.rstrip("/")
		self.trust_proxy = trust_proxy

	def _applies(self, path: str) -> bool:
		return path == self.prefix or path.startswith(self.prefix + "/")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if request.method == "OPTIONS" or not self._applies(request.url.path):
			return await call_next(request)
		peer = request.client.host if request.client else None
		key = client_ip(request.headers, peer, self.trust_proxy)
		result = self.limiter.hit(key)
		if not result.allowed:
			logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
			return JSONResponse(
				{"status": "fail", "message": RATE_LIMIT_MESSAGE},
				status_code=429,
				headers={
					"Retry-After": str(result.retry_after),
					"X-RateLimit-Limit": str(result.limit),
					"X-RateLimit-Remaining": "0",
				},
			)
		response = await call_next(request)
		response.headers["X-RateLimit-Limit"] = str(result.limit)
		response.headers["X-RateLimit-Remaining"] = str(result.remaining)
		return response
