from __future__ import annotations


class WorkflowError(Exception):
    code = 'workflow_error'
    http_status = 500
    public_message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        self.message = (message or self.public_message or self.code).strip()
        super().__init__(self.message)

    def to_response_payload(self) -> dict:
        return {'error': self.code, 'message': self.public_message or self.message}


class ValidationError(WorkflowError):
    code = 'validation_error'
    http_status = 400


class NotFoundError(WorkflowError):
    code = 'not_found'
    http_status = 404


class PermissionDeniedError(WorkflowError):
    code = 'permission_denied'
    http_status = 403


class ConflictError(WorkflowError):
    code = 'conflict'
    http_status = 409


class InvalidTransitionError(ConflictError):
    code = 'invalid_transition'


class StorageError(WorkflowError):
    code = 'storage_error'
    http_status = 500
    public_message = 'The operation could not be completed.'


class SyncFailure(WorkflowError):
    """Raised by sync clients when the external system cannot be reached or rejects the call."""

    code = 'sync_failed'
    http_status = 502
