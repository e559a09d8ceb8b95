# firebase_auth.py
import json

import firebase_admin
from fastapi import Request
from firebase_admin import auth, credentials
from firebase_admin import exceptions as firebase_exceptions

from app.models.auth import Identity
from app.services.token_service import decode_session_token
from app.utils.config import Settings
from app.utils.errors import InvalidToken, Unauthenticated
from app.utils.logger import logger

BEARER_PREFIX = "Bearer "


def get_firebase_app(credentials_json: str | None = None):
    """
    Initialize the Firebase Admin SDK once, using a service-account JSON from
    FIREBASE_CREDENTIALS_JSON or application default credentials.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        if credentials_json:
            cred = credentials.Certificate(json.loads(credentials_json))
        else:
            cred = credentials.ApplicationDefault()
        logger.info("✅ Initializing Firebase Admin SDK")
        return firebase_admin.initialize_app(cred)


def verify_firebase_assertion(id_token: str | None, expected_uid: str, settings: Settings) -> dict:
    """
    Verify an upstream Firebase ID token and check it belongs to `expected_uid`.
    Only used when auth.verify_firebase_token is enabled.
    """
    if not id_token:
        raise InvalidToken("Firebase token is required.")
    firebase_app = get_firebase_app(settings.firebase_credentials_json)
    try:
        decoded = auth.verify_id_token(id_token, app=firebase_app)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning(f"⚠️ Firebase token verification failed: {e}")
        raise InvalidToken("Invalid Firebase token.") from e
    if decoded.get("uid") != expected_uid:
        logger.warning(f"⚠️ Firebase token uid does not match claimed uid {expected_uid}")
        raise InvalidToken("Invalid Firebase token.")
    return decoded


def extract_bearer_token(auth_header: str | None) -> str:
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise Unauthenticated()
    # Exactly "Bearer <token>": no padding, no embedded whitespace
    token = auth_header[len(BEARER_PREFIX):]
    if not token or any(ch.isspace() for ch in token):
        raise Unauthenticated()
    return token


async def verify_token(request: Request) -> Identity:
    """
    FastAPI dependency: verify the session token in the Authorization header.
    Attaches the decoded identity to request.state.user.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    settings: Settings = request.app.state.settings
    identity = decode_session_token(token, settings.jwt_secret)
    request.state.user = identity
    return identity
