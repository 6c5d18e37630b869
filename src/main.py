from __future__ import annotations

import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from src.application.dtos.common_dto import HealthResponse, RootResponse
from src.infrastructure.api.middlewares import add_default_middlewares
from src.infrastructure.api.routes.admin_routes import router as admin_router
from src.infrastructure.api.routes.auth_routes import router as auth_router
from src.infrastructure.api.routes.dashboard_routes import router as dashboard_router
from src.infrastructure.api.routes.image_routes import router as image_router
from src.infrastructure.api.routes.leaderboard_routes import router as leaderboard_router
from src.infrastructure.api.routes.media_routes import router as media_router
from src.infrastructure.logging_config import configure_logging
from src.infrastructure.storage.supabase_storage import LOCAL_URL_PREFIX


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Astra Labs Backend",
        version="0.1.0",
        description="""
        ## Astra Labs Backend API

        FastAPI backend for AI image generation, a public gallery with up-votes,
        and version lineage for reprompted images. Supabase provides auth,
        database and storage; OpenAI provides generation.

        ### Features
        - **Authentication**: Token-based sessions with Supabase, designer and admin roles
        - **Generation**: Text-to-image generation and durable storage of results
        - **Versions**: Reprompt an image to create the next version of its chain
        - **Gallery**: Public listing, prompt search and search-by-image
        - **Voting**: One up-vote per user per image, toggled atomically
        - **Leaderboard**: Top voted images and designer rankings
        - **Admin**: Browse every image, inspect designers, promote admins

        ### Authentication
        Write endpoints, `/dashboard` and `/admin` require a Bearer token
        in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Error Responses
        - **400 Bad Request**: Invalid request parameters or image data
        - **401 Unauthorized**: Missing, invalid or signed-out token
        - **403 Forbidden**: Role does not allow the operation
        - **404 Not Found**: Requested resource does not exist
        - **422 Unprocessable Entity**: Validation error in request body
        - **502 Bad Gateway**: Storage, database or generation provider failure
        """,
        contact={
            "name": "Astra Labs Team",
        },
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    add_default_middlewares(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the Astra Labs API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "astra-labs", "version": app.version}

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    # media saved in disabled mode is served from the local storage dir
    if os.getenv("SUPABASE_DISABLED", "0") == "1":
        local_dir = Path(os.getenv("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage"))
        local_dir.mkdir(parents=True, exist_ok=True)
        app.mount(LOCAL_URL_PREFIX, StaticFiles(directory=local_dir, check_dir=False), name="local-storage")

    app.include_router(auth_router)
    app.include_router(media_router)
    app.include_router(image_router)
    app.include_router(leaderboard_router)
    app.include_router(dashboard_router)
    app.include_router(admin_router)
    return app


app = create_app()
