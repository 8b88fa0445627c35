from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(AppError):
    """The requested entity does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


# ---------------------------------------------------------------------------
# Approver resolution
# ---------------------------------------------------------------------------


class ResolutionError(AppError):
    """An approval step could not be turned into concrete approvers."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class EmptyStepError(ResolutionError):
    """A step resolved to zero approvers."""


class UnknownApproverError(ResolutionError):
    """An approver spec references a user, role or position that does not exist."""


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class ActionError(AppError):
    """A decision on an approval action was refused."""


class NotPendingError(ActionError):
    """The action or its submission is no longer awaiting a decision."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class NotAuthorizedError(ActionError):
    """The actor is not the approver bound to the action."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class InvalidTransitionError(AppError):
    """The submission state machine does not allow the requested transition."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


# ---------------------------------------------------------------------------
# Leave balance
# ---------------------------------------------------------------------------


class BalanceError(AppError):
    """A leave balance mutation was refused."""


class InsufficientEntitlementError(BalanceError):
    """The requested days exceed the available balance."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class NegativeBalanceError(BalanceError):
    """A mutation would drive a ledger field below zero."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class ConcurrencyConflictError(AppError):
    """Serialization conflicts persisted after the bounded retries."""

    def __init__(self, message: str = "The request conflicted with a concurrent update, please try again") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
