import json
import logging
from typing import Any, Iterable
from urllib.parse import parse_qsl, urlencode

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

_LOGGER = logging.getLogger(__name__)


def _is_operator_key(key: str) -> bool:
	return key.startswith("$") or "." in key


def escape_html(value: str) -> str:
	return value.replace("<", "&lt;").replace(">", "&gt;")


def sanitize_value(value: Any) -> Any:
	"""
	Strips MongoDB operator keys and escapes markup in a decoded JSON document.

	Keys beginning with `$` or containing `.` are dropped at every depth; string
	values have `<` and `>` replaced by their HTML entities.
	"""
	if isinstance(value, dict):
		return {k: sanitize_value(v) for k, v in value.items() if not _is_operator_key(k)}
	if isinstance(value, list):
		return [sanitize_value(v) for v in value]
	if isinstance(value, str):
		return escape_html(value)
	return value


def sanitize_json_body(body: bytes) -> bytes:
	if not body:
		return body
	try:
		data = json.loads(body)
	except ValueError:
		# Leave malformed payloads for request validation to reject.
		return body
	return json.dumps(sanitize_value(data), ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def sanitize_query_string(query_string: bytes, whitelist: Iterable[str] = ()) -> bytes:
	if not query_string:
		return query_string
	allowed_repeats = set(whitelist)
	pairs = parse_qsl(query_string.decode("utf-8", errors="replace"), keep_blank_values=True)
	kept: dict[str, list[str]] = {}
	for key, value in pairs:
		if "$" in key or "." in key:
			continue
		value = escape_html(value)
		if key in allowed_repeats:
			kept.setdefault(key, []).append(value)
		else:
			# parameter pollution: last occurrence wins
			kept[key] = [value]
	return urlencode([(k, v) for k, values in kept.items() for v in values]).encode("ascii")


def _header(scope: Scope, name: bytes) -> str | None:
	for key, value in scope.get("headers", []):
		if key.lower() == name:
			return value.decode("latin-1")
	return None


class SanitizeMiddleware:
	"""
	Enforces the JSON body size limit and cleans query strings and JSON bodies
	before they reach any route.
	"""

	def __init__(self, app: ASGIApp, max_body_bytes: int = 10 * 1024, param_whitelist: Iterable[str] = ()) -> None:
		self.app = app
		self.max_body_bytes = max_body_bytes
		self.param_whitelist = tuple(param_whitelist)

	async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
		if scope["type"] != "http":
			await self.app(scope, receive, send)
			return
		scope = dict(scope)
		scope["query_string"] = sanitize_query_string(scope.get("query_string", b""), self.param_whitelist)

		content_type = (_header(scope, b"content-type") or "").lower()
		if "json" not in content_type:
			await self.app(scope, receive, send)
			return

		declared = _header(scope, b"content-length")
		if declared and declared.isdigit() and int(declared) > self.max_body_bytes:
			await self._reject_too_large(scope, receive, send)
			return

		body = b""
		more_body = True
		while more_body:
			message = await receive()
			if message["type"] == "http.disconnect":
				return
			body += message.get("body", b"")
			if len(body) > self.max_body_bytes:
				await self._reject_too_large(scope, receive, send)
				return
			more_body = message.get("more_body", False)

		body = sanitize_json_body(body)
		scope["headers"] = [(k, v) for k, v in scope.get("headers", []) if k.lower() != b"content-length"]
		scope["headers"].append((b"content-length", str(len(body)).encode("latin-1")))

		delivered = False

		async def replay() -> Message:
			nonlocal delivered
			if not delivered:
				delivered = True
				return {"type": "http.request", "body": body, "more_body": False}
			return await receive()

		await self.app(scope, replay, send)

	async def _reject_too_large(self, scope: Scope, receive: Receive, send: Send) -> None:
		_LOGGER.warning("Rejected request body over %d bytes on %s", self.max_body_bytes, scope.get("path"))
		response = JSONResponse(
			{"status": "fail", "message": f"Request body exceeds {self.max_body_bytes} bytes"},
			status_code=413,
		)
		await response(scope, receive, send)
