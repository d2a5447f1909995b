"""
Error taxonomy shared by services and routers

NotFound, InvalidInput and InvalidStateTransition are expected conditions
that routers turn into 4xx responses. InternalError wraps store or
collaborator failures and is reported to callers without details.
"""

from fastapi import HTTPException


class SupervisorError(Exception):
    """Base class for all engine errors"""

    status_code = 500


class NotFoundError(SupervisorError):
    status_code = 404


class InvalidInputError(SupervisorError):
    status_code = 400


class InvalidStateTransitionError(SupervisorError):
    status_code = 409

    def __init__(self, request_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Request {request_id} is not pending (status: {current_status}), "
            f"cannot move to {target_status}"
        )
        self.request_id = request_id
        self.current_status = current_status
        self.target_status = target_status


class InternalError(SupervisorError):
    status_code = 500


def to_http_exception(error: SupervisorError) -> HTTPException:
    if isinstance(error, InternalError):
        return HTTPException(status_code=500, detail="Internal server error")
    return HTTPException(status_code=error.status_code, detail=str(error))
