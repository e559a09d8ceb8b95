import logging
from typing import Optional

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from app.api import auth, chatbot
from app.services.completion_service import CompletionGateway
from app.services.firebase_auth import verify_token
from app.services.session_store import TranscriptStore, build_store
from app.utils.config import Settings, load_config
from app.utils.errors import register_error_handlers
from app.utils.logger import setup_logging
from app.utils.middleware import RateLimiter, install_http_middleware


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TranscriptStore] = None,
    gateway: Optional[CompletionGateway] = None,
) -> FastAPI:
    """
    Assemble the API. Store and gateway handles are created once here and
    shared by every request; tests pass their own.
    """
    if settings is None:
        settings = Settings.from_config(load_config())

    # -------------------------------------------------------------------------
    # Set up logging
    # -------------------------------------------------------------------------
    setup_logging(settings.logging)

    # -------------------------------------------------------------------------
    # Initialize FastAPI
    # -------------------------------------------------------------------------
    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.state.settings = settings
    app.state.store = store or build_store(settings)
    app.state.gateway = gateway or CompletionGateway.from_settings(settings)

    register_error_handlers(app)

    # -------------------------------------------------------------------------
    # Rate limiting and security headers
    # -------------------------------------------------------------------------
    install_http_middleware(
        app,
        RateLimiter(
            settings.rate_limit_max_requests,
            settings.rate_limit_window_seconds,
            max_clients=settings.rate_limit_max_clients,
        ),
    )

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------
    app.include_router(auth.router, tags=["Authentication"])
    app.include_router(
        chatbot.router,
        tags=["Chatbot"],
        dependencies=[Depends(verify_token)],
    )

    @app.get("/")
    async def root():
        return {"message": f"Welcome to {settings.app_name}!"}

    logging.info(f"✅ {settings.app_name} is starting up!")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
