"""
Application entry point for the bulk-edit API.

Run with:
    uvicorn src.main:app --app-dir backend
"""

import logging

from fastapi import FastAPI

from src.api.routes import auth_status, imports
from src.credentials.encryption import validate_encryption_configured
from src.credentials.redaction import setup_credential_logging
from src.platform.errors import AppError, ErrorHandlerMiddleware, app_error_handler

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the FastAPI app with error handling and all routers."""
    setup_credential_logging()
    if not validate_encryption_configured():
        logger.warning("ENCRYPTION_KEY not configured; stored tokens cannot be read")

    app = FastAPI(title="HubSpot Bulk Edit API")

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(imports.router)
    app.include_router(auth_status.router)

    return app


logging.basicConfig(level=logging.INFO)
app = create_app()
