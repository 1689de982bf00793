"""
Domain errors raised by the PM services.
Routes never see partial state: every error is raised before the first write.
"""
from typing import Optional


class PMError(Exception):
    code = "pm_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.field:
            body["field"] = self.field
        return body


class NotFoundError(PMError):
    code = "not_found"


class InvalidTargetError(PMError):
    code = "invalid_target"


class InvalidNameError(PMError):
    code = "invalid_name"


class InvalidRecurrenceError(PMError):
    code = "invalid_recurrence"


class InvalidTemplateError(PMError):
    code = "invalid_template"
