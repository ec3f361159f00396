# board_core/workflows/errors.py
"""
Failure kinds of the board workflow engine.

Each one is a DRF APIException so views can simply let them propagate;
the `detail` payload always carries an "error" code the board UI
switches on to decide whether to refresh, retry or revert.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class WorkflowError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "workflow_error"
    default_detail = "Workflow operation failed."

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        payload: Dict[str, Any] = {
            "error": self.default_code,
            "detail": detail or self.default_detail,
        }
        payload.update(extra)
        self.payload = payload
        super().__init__(detail=payload, code=self.default_code)


class Unauthenticated(WorkflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthenticated"
    default_detail = "Caller identity could not be resolved."


class InvalidReorderRequest(WorkflowError):
    default_code = "invalid_request"
    default_detail = "Reorder request is malformed."


class EntityNotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"
    default_detail = "One or more entities do not exist. Refresh the board and retry."

    def __init__(self, missing: Iterable[Any], detail: Optional[str] = None):
        super().__init__(detail, missing=sorted(missing))


class TransitionForbidden(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"
    default_detail = "One or more requested transitions are not permitted."

    def __init__(self, failures: List[Dict[str, Any]], detail: Optional[str] = None):
        reason = failures[0]["reason"] if failures else None
        super().__init__(detail, reason=reason, failures=failures)


class VersionConflict(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"
    default_detail = "Another change landed first. Refresh the board and retry."

    def __init__(self, conflicting: Iterable[Any], detail: Optional[str] = None):
        super().__init__(detail, conflicting=sorted(conflicting))


class StorageFailure(WorkflowError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "storage_failure"
    default_detail = "The board change could not be stored. Nothing was written; retry is safe."


def workflow_exception_handler(exc, context):
    """
    DRF's handler stringifies every leaf of a dict detail; workflow errors
    keep their raw payload so ids stay ids.
    """
    response = exception_handler(exc, context)
    if response is not None and isinstance(exc, WorkflowError):
        response.data = exc.payload
    return response


__all__ = [
    "WorkflowError",
    "Unauthenticated",
    "InvalidReorderRequest",
    "EntityNotFound",
    "TransitionForbidden",
    "VersionConflict",
    "StorageFailure",
    "workflow_exception_handler",
]
