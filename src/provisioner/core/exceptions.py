from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorKind(Enum):
    INVALID_PLAN = "invalid_plan"
    INVALID_NAME = "invalid_name"
    STEP_FAILURE = "step_failure"
    STEP_WARNING = "step_warning"
    CANCELLED = "cancelled"
    CONFIGURATION = "configuration"


class ErrorSeverity(Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    EXTERNAL_SERVICE = "external_service"
    CONFIGURATION = "configuration"
    BUSINESS_LOGIC = "business_logic"


class ProvisioningError(Exception):
    kind: ErrorKind = ErrorKind.STEP_FAILURE
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.BUSINESS_LOGIC

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(UTC)
        self.error_id = f"ERR-{uuid.uuid4().hex[:12].upper()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "severity": self.severity.value,
            "category": self.category.value,
            "message": self.message,
            "details": self.details,
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class InvalidPlanError(ProvisioningError):
    kind = ErrorKind.INVALID_PLAN
    category = ErrorCategory.VALIDATION


class InvalidNameError(ProvisioningError):
    kind = ErrorKind.INVALID_NAME
    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, name: str, resource_type: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.name = name
        self.resource_type = resource_type
        self.details.setdefault("name", name)
        self.details.setdefault("resource_type", resource_type)


class StepFailure(ProvisioningError):
    kind = ErrorKind.STEP_FAILURE
    category = ErrorCategory.EXTERNAL_SERVICE

    def __init__(self, step_id: str, cause: BaseException | str):
        reason = cause if isinstance(cause, str) else f"{type(cause).__name__}: {cause}"
        super().__init__(
            f"step {step_id!r} failed: {reason}",
            details={"step_id": step_id},
            cause=cause if isinstance(cause, BaseException) else None,
        )
        self.step_id = step_id
        self.reason = reason


class RunCancelledError(ProvisioningError):
    kind = ErrorKind.CANCELLED
    severity = ErrorSeverity.WARNING

    def __init__(self, step_id: str):
        super().__init__(
            f"run cancelled before step {step_id!r}", details={"step_id": step_id}
        )
        self.step_id = step_id


class ConfigurationError(ProvisioningError):
    kind = ErrorKind.CONFIGURATION
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.CRITICAL


class CredentialError(ConfigurationError):
    category = ErrorCategory.AUTHENTICATION
