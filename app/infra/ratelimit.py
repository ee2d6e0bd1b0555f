import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping


@dataclass
class RateLimitResult:
	allowed: bool
	limit: int
	remaining: int
	retry_after: int


class _Window:
	def __init__(self, started_at: float) -> None:
		self.started_at = started_at
		self.hits = 0


class RateLimiter:
	"""Fixed-window request counter keyed by client."""

	def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
		self.max_requests = max(1, max_requests)
		self.window_seconds = max(1.0, float(window_seconds))
		self._clock = clock
		self._windows: Dict[str, _Window] = {}
		self._lock = threading.Lock()

	def hit(self, key: str) -> RateLimitResult:
		with self._lock:
			now = self._clock()
			w = self._windows.get(key)
			if w is None or now - w.started_at >= self.window_seconds:
				self._prune(now)
				w = _Window(now)
				self._windows[key] = w
			w.hits += 1
			retry_after = max(1, math.ceil(w.started_at + self.window_seconds - now))
			if w.hits > self.max_requests:
				return RateLimitResult(False, self.max_requests, 0, retry_after)
			return RateLimitResult(True, self.max_requests, self.max_requests - w.hits, retry_after)

	def reset(self, key: str | None = None) -> None:
		with self._lock:
			if key is None:
				self._windows.clear()
			else:
				self._windows.pop(key, None)

	def _prune(self, now: float) -> None:
		expired = [k for k, w in self._windows.items() if now - w.started_at >= self.window_seconds]
		for k in expired:
			del self._windows[k]


def client_ip(headers: Mapping[str, str], peer: str | None, trust_proxy: bool) -> str:
	if trust_proxy:
		forwarded = headers.get("x-forwarded-for")
		if forwarded:
			first = forwarded.split(",")[0].strip()
			if first:
				return first
	return peer or "unknown"
