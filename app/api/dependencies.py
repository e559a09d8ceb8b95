from fastapi import Request

from app.services.completion_service import CompletionGateway
from app.services.session_store import TranscriptStore
from app.utils.config import Settings


# Long-lived handles are created in create_app() and live on app.state
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> TranscriptStore:
    return request.app.state.store


def get_gateway(request: Request) -> CompletionGateway:
    return request.app.state.gateway
