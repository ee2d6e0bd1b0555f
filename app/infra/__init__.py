from .ratelimit import RateLimiter, RateLimitResult, client_ip

__all__ = ["RateLimiter", "RateLimitResult", "client_ip"]
