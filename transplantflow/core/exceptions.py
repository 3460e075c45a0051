"""
Error taxonomy for the evaluation engine and its mapping onto HTTP responses.
"""
import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class TransplantFlowError(Exception):
    """Base class for engine errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PatientNotFoundError(TransplantFlowError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, patient_id: str):
        super().__init__(f"Patient not found: {patient_id}")
        self.patient_id = patient_id


class PairNotFoundError(TransplantFlowError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, pair_id: str):
        super().__init__(f"Pair not found: {pair_id}")
        self.pair_id = pair_id


class PairingError(TransplantFlowError):
    """A pair must link exactly one donor and one recipient, each at most once."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidPhaseError(TransplantFlowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DataEntryError(TransplantFlowError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class StoreUnavailableError(TransplantFlowError):
    """The record store could not be read or written."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ExternalServiceError(TransplantFlowError):
    """A best-effort external service (summarization, extraction) failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


async def transplantflow_exception_handler(request: Request, exc: TransplantFlowError):
    request_id = getattr(request.state, "request_id", "N/A")
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc, extra={"request_id": request_id})
    else:
        logger.info("%s: %s", type(exc).__name__, exc, extra={"request_id": request_id})
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def general_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", "N/A")
    logger.exception("Unhandled error: %s", exc, extra={"request_id": request_id})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )
