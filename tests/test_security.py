import json

from app.infra.ratelimit import RateLimiter, client_ip
from app.security.headers import SecurityHeadersConfig, get_security_headers
from app.security.sanitize import sanitize_json_body, sanitize_query_string, sanitize_value


class FakeClock:
	def __init__(self) -> None:
		self.now = 1000.0

	def __call__(self) -> float:
		return self.now


def test_sanitize_value_removes_operators_at_every_depth():
	doc = {"a": {"b": {"$ne": 1, "c": 2}}, "list": [{"$or": []}, {"ok": "<i>"}]}
	assert sanitize_value(doc) == {"a": {"b": {"c": 2}}, "list": [{}, {"ok": "&lt;i&gt;"}]}


def test_sanitize_value_keeps_scalars():
	assert sanitize_value(5) == 5
	assert sanitize_value(None) is None
	assert sanitize_value(True) is True


def test_malformed_json_body_passes_through():
	assert sanitize_json_body(b"{not json") == b"{not json"
	assert sanitize_json_body(b"") == b""


def test_json_body_keeps_unicode():
	out = sanitize_json_body(json.dumps({"name": "Café"}).encode())
	assert json.loads(out) == {"name": "Café"}


def test_query_string_last_value_wins_unless_whitelisted():
	qs = b"price=1&price=2&sort=a&sort=b"
	assert sanitize_query_string(qs, ["price"]) == b"price=1&price=2&sort=b"


def test_query_string_drops_operator_keys_and_escapes():
	qs = b"price[$gte]=5&name=%3Cb%3E&a.b=1"
	assert sanitize_query_string(qs) == b"name=%26lt%3Bb%26gt%3B"


def test_empty_query_string_untouched():
	assert sanitize_query_string(b"") == b""


def test_rate_limiter_fixed_window():
	clock = FakeClock()
	limiter = RateLimiter(max_requests=2, window_seconds=60, clock=clock)
	assert limiter.hit("1.1.1.1").allowed
	second = limiter.hit("1.1.1.1")
	assert second.allowed and second.remaining == 0
	blocked = limiter.hit("1.1.1.1")
	assert not blocked.allowed
	assert blocked.retry_after == 60
	# other clients have their own window
	assert limiter.hit("2.2.2.2").allowed
	clock.now += 30
	assert limiter.hit("1.1.1.1").retry_after == 30
	clock.now += 30
	assert limiter.hit("1.1.1.1").allowed


def test_rate_limiter_reset():
	limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
	limiter.hit("k")
	assert not limiter.hit("k").allowed
	limiter.reset("k")
	assert limiter.hit("k").allowed


def test_client_ip_ignores_forwarded_unless_trusted():
	headers = {"x-forwarded-for": "9.9.9.9, 10.0.0.1"}
	assert client_ip(headers, "127.0.0.1", trust_proxy=False) == "127.0.0.1"
	assert client_ip(headers, "127.0.0.1", trust_proxy=True) == "9.9.9.9"
	assert client_ip({}, None, trust_proxy=True) == "unknown"


def test_security_headers_follow_config():
	headers = get_security_headers(SecurityHeadersConfig(frame_options="DENY", hsts_max_age=60))
	assert headers["X-Frame-Options"] == "DENY"
	assert headers["Strict-Transport-Security"] == "max-age=60; includeSubDomains"
	assert headers["X-DNS-Prefetch-Control"] == "off"
