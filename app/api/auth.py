# app/api/auth.py
from datetime import timedelta

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from app.api.dependencies import get_settings
from app.models.auth import VerifyRequest, VerifyResponse
from app.services.firebase_auth import verify_firebase_assertion
from app.services.token_service import exchange_identity, normalize_identity
from app.utils.config import Settings
from app.utils.logger import logger

router = APIRouter(prefix="/api/auth")


@router.post("/verify", response_model=VerifyResponse)
async def verify_user(body: VerifyRequest, settings: Settings = Depends(get_settings)):
    """
    Exchange the signed-in Firebase user for a session token.
    The client-supplied identity is trusted unless auth.verify_firebase_token is set.
    """
    identity = normalize_identity(body.user)
    logger.info(f"📡 Received verify request for user {identity.uid}")

    if settings.verify_firebase_token:
        await run_in_threadpool(verify_firebase_assertion, body.firebase_token, identity.uid, settings)

    token, identity = exchange_identity(
        identity,
        settings.jwt_secret,
        expires_in=timedelta(hours=settings.token_expiry_hours),
    )
    return VerifyResponse(token=token, user=identity)
