"""
Exception hierarchy for the registration form.

Every error carries a machine-readable `code` so hosts can branch on it
without parsing English messages. Field validation problems are not
exceptions: they travel as `Rejected` results.
"""
from typing import Any, Dict, Optional


class RegistrationError(Exception):
    """Base class for all registration-form errors."""
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UnknownFieldError(RegistrationError):
    code = "UNKNOWN_FIELD"

    def __init__(self, name: str):
        super().__init__(
            message=f"Unknown form field '{name}'.",
            details={"field": name},
        )


class SubmissionError(RegistrationError):
    code = "SUBMISSION_FAILED"

    def __init__(self, cause: BaseException):
        super().__init__(
            message="Failed to submit the form. Please try again.",
            details={"cause": type(cause).__name__},
        )
        self.__cause__ = cause


class ConfigError(RegistrationError):
    code = "INVALID_CONFIG"
