import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from gymbook.schemas.enums import BookingFailureReason
from gymbook.services.eligibility import BookingError

logger = logging.getLogger(__name__)

BOOKING_ERROR_STATUS = {
    BookingFailureReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingFailureReason.TRANSIENT_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(include_url=False, include_context=False)},
    )


async def booking_exception_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Handle refused bookings. Rule, deadline and duplicate refusals are conflicts."""
    status_code = BOOKING_ERROR_STATUS.get(exc.reason, status.HTTP_409_CONFLICT)
    logger.info(f"Booking refused on {request.url.path}: {exc.reason.value} ({status_code})")
    return JSONResponse(
        status_code=status_code,
        content={"reason": exc.reason.value, "message": exc.user_message},
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy database errors."""
    logger.error(f"Database error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other exceptions."""
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred"},
    )
