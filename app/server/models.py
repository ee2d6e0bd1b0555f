from typing import Literal, Optional

from pydantic import BaseModel


StatusValue = Literal["ok", "fail", "error"]


class HealthResponse(BaseModel):
	status: StatusValue
	state: str


class ErrorResponse(BaseModel):
	status: StatusValue
	message: str
	error: Optional[str] = None
	details: Optional[list[dict[str, str]]] = None
