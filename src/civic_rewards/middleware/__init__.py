"""Request pipeline for the rewards API."""

from fastapi import FastAPI

from civic_rewards.config import Settings
from civic_rewards.middleware.cors import setup_cors
from civic_rewards.middleware.error_handler import setup_error_handlers
from civic_rewards.middleware.logging import setup_logging
from civic_rewards.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, the error envelope, request ids and CORS.

    Starlette runs middleware last-added-outermost. CORS goes on last so that
    403/409/422 rejections from check-in intake still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
