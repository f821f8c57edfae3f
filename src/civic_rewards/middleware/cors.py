"""CORS for the civic web and mobile clients."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from civic_rewards.config import Settings

# Every route is a read, an intake POST or a goal PATCH
ALLOWED_METHODS = ["GET", "POST", "PATCH", "OPTIONS"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )
