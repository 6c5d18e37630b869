from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)

# Every route under these prefixes acts for a signed-in user
PROTECTED_PREFIXES = ("/dashboard", "/admin")


def is_protected_path(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in PROTECTED_PREFIXES)


def add_default_middlewares(app: FastAPI) -> None:
    @app.middleware("http")
    async def require_bearer_on_protected_paths(request: Request, call_next):
        if request.method != "OPTIONS" and is_protected_path(request.url.path):
            header = request.headers.get("authorization", "")
            if not header.lower().startswith("bearer ") or not header[7:].strip():
                logger.info("Rejected unauthenticated %s %s", request.method, request.url.path)
                return JSONResponse(status_code=401, content={"detail": "Missing bearer token"})
        return await call_next(request)

    # CORS configuration
    # In development/demo mode, allow common frontend origins
    env = os.getenv("ENV", "development")

    if env in ("development", "staging"):
        allowed_origins = [
            "http://localhost:3000",
            "http://localhost:3001",
            "http://localhost:5173",  # Vite default
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
            "http://127.0.0.1:5173",
        ]
    else:
        allowed_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    # added last so it wraps the guard and 401s still carry CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
