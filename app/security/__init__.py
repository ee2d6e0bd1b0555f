from .headers import SecurityHeadersConfig, SecurityHeadersMiddleware, get_security_headers
from .sanitize import SanitizeMiddleware, sanitize_json_body, sanitize_query_string, sanitize_value

__all__ = [
	"SanitizeMiddleware",
	"SecurityHeadersConfig",
	"SecurityHeadersMiddleware",
	"get_security_headers",
	"sanitize_json_body",
	"sanitize_query_string",
	"sanitize_value",
]
