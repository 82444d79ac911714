"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``main.create_app`` renders them as
``{"detail": <message>, "kind": <kind>}`` with the matching status code.
Only ``InternalError`` is worth retrying without changing the request.
"""

from __future__ import annotations

from fastapi import status


class ServiceError(Exception):
    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class InvalidStateError(ServiceError):
    kind = "invalid_state"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation not permitted in the current state"


class InvalidInputError(ServiceError):
    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InternalError(ServiceError):
    pass
