"""Application error types.

Every error raised towards the HTTP boundary derives from ``AppError`` and is
rendered by the handlers registered in ``main`` as
``{"error": ..., "code": ...}`` with the error's status code. Conditions that
components absorb locally (a dropped suggestion stream, a transport hiccup)
still use these types internally so logs name them consistently.
"""

from __future__ import annotations
from typing import Any, Dict, Optional


class AppError(Exception):
	status_code: int = 500
	code: str = "INTERNAL_ERROR"

	def __init__(self, message: str, *, details: Any = None) -> None:
		super().__init__(message)
		self.message = message
		self.details = details

	def to_dict(self) -> Dict[str, Any]:
		body: Dict[str, Any] = {"error": self.message, "code": self.code}
		if self.details is not None:
			body["details"] = self.details
		return body


class InvalidInput(AppError):
	status_code = 400
	code = "VALIDATION_ERROR"

	def __init__(self, message: str, *, field: Optional[str] = None, details: Any = None) -> None:
		super().__init__(message, details=details)
		self.field = field

	def to_dict(self) -> Dict[str, Any]:
		body = super().to_dict()
		if self.field:
			body["field"] = self.field
		return body


class NotFoundError(AppError):
	status_code = 404
	code = "RESOURCE_NOT_FOUND"


class BackendMisconfiguration(AppError):
	code = "CONFIGURATION_ERROR"


class EvaluationFailed(AppError):
	code = "EVALUATION_FAILED"


class TransportError(AppError):
	status_code = 502
	code = "TRANSPORT_ERROR"


class StreamError(AppError):
	status_code = 502
	code = "STREAM_ERROR"
