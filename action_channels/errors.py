"""
Error taxonomy for channel registration and payment building.

Every error carries a short machine-stable ``code`` and a human-readable
``message``. Handlers registered on the FastAPI app turn them into the
``{"error": {"code", "message", "details"}}`` envelope; internal causes are
logged but never sent to the caller.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Base class for all errors surfaced to callers."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# ── Validation (client errors) ──

class InvalidName(ChannelError):
    code = "INVALID_NAME"
    status_code = 400
    default_message = (
        "Invalid channel name. Use only letters, numbers, spaces, hyphens, "
        "and underscores (3-50 characters)."
    )


class InvalidDescription(ChannelError):
    code = "INVALID_DESCRIPTION"
    status_code = 400
    default_message = "Description must be between 10 and 1000 characters long"


class InvalidFee(ChannelError):
    code = "INVALID_FEE"
    status_code = 400
    default_message = "Fee must be a number greater than 0 and at most 1000"


class InvalidAddress(ChannelError):
    code = "INVALID_ADDRESS"
    status_code = 400
    default_message = "Invalid public key format"


class InvalidUrl(ChannelError):
    code = "INVALID_URL"
    status_code = 400
    default_message = "A valid http(s) URL is required"


class InvalidContactLink(ChannelError):
    code = "INVALID_CONTACT_LINK"
    status_code = 400
    default_message = "A valid contact link is required"


class DuplicateChannel(ChannelError):
    code = "DUPLICATE_CHANNEL"
    status_code = 409
    default_message = "Channel name already exists"


class NotFound(ChannelError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Channel not found"


# ── Payment building ──

class InvalidPayerAddress(ChannelError):
    code = "INVALID_PAYER_ADDRESS"
    status_code = 400
    default_message = "Account must be a valid wallet address"


class InsufficientFunds(ChannelError):
    code = "INSUFFICIENT_FUNDS"
    status_code = 400
    default_message = "Account balance is too low to pay the channel fee"


class LedgerUnavailable(ChannelError):
    code = "LEDGER_UNAVAILABLE"
    status_code = 503
    default_message = "The ledger node could not be reached"


# ── Storage (server errors) ──

class StorageReadError(ChannelError):
    code = "STORAGE_READ_ERROR"
    status_code = 500
    default_message = "Channel records could not be read"


class StorageWriteError(ChannelError):
    code = "STORAGE_WRITE_ERROR"
    status_code = 500
    default_message = "Channel records could not be saved"


def create_error_response(status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None):
    content = {
        "error": {
            "code": code,
            "message": message,
            "details": details
        }
    }
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers that render the error envelope."""

    @app.exception_handler(ChannelError)
    async def handle_channel_error(request: Request, exc: ChannelError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.__cause__ or exc.message)
        else:
            logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return create_error_response(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
        return create_error_response(400, "INVALID_REQUEST", "Request body is malformed", {"fields": fields})

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception on %s %s: %s\n%s",
            request.method, request.url.path, exc, traceback.format_exc(),
        )
        return create_error_response(500, ChannelError.code, ChannelError.default_message)
