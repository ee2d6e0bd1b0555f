class AppError(Exception):
	"""Operational error that is safe to report to the client as-is."""

	def __init__(self, message: str, status_code: int = 404) -> None:
		super().__init__(message)
		self.message = message
		self.status_code = status_code
		self.status = "fail" if 400 <= status_code < 500 else "error"


class StoreConnectionError(RuntimeError):
	pass


class ServerStartupError(RuntimeError):
	pass
