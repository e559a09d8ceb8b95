# token_service.py
"""
Session tokens: the signed, stateless bearer credential issued by /api/auth/verify.
"""
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JOSEError, JWTError, jwt

from app.models.auth import FirebaseUser, Identity
from app.utils.errors import InvalidInput, InvalidToken, SigningError, TokenExpired
from app.utils.logger import logger

ALGORITHM = "HS256"
DEFAULT_EXPIRY = timedelta(days=1)


def issue_session_token(identity: Identity, secret: str | None, expires_in: timedelta = DEFAULT_EXPIRY) -> str:
    """Sign {uid, email, name} with the server secret."""
    if not secret:
        logger.error("❌ JWT_SECRET is not configured; cannot sign session token")
        raise SigningError(details="JWT_SECRET is not configured")
    now = datetime.now(timezone.utc)
    payload = {
        "uid": identity.uid,
        "email": identity.email,
        "name": identity.name,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    try:
        return jwt.encode(payload, secret, algorithm=ALGORITHM)
    except JOSEError as e:
        logger.error(f"❌ Failed to sign session token for {identity.uid}: {e}", exc_info=True)
        raise SigningError(details=str(e)) from e


def decode_session_token(token: str, secret: str | None) -> Identity:
    """
    Verify signature and expiry of a session token.
    Raises TokenExpired for a past `exp`, InvalidToken for everything else.
    """
    if not secret:
        raise InvalidToken()
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpired() from e
    except JWTError as e:
        raise InvalidToken() from e

    uid = claims.get("uid")
    if not isinstance(uid, str) or not uid:
        raise InvalidToken()
    return Identity(uid=uid, email=claims.get("email"), name=claims.get("name"))


def normalize_identity(user: FirebaseUser | None) -> Identity:
    if user is None or not user.uid or not user.uid.strip():
        raise InvalidInput("User ID is required.")
    return Identity(uid=user.uid, email=user.email, name=user.display_name)


def exchange_identity(
    identity: Identity,
    secret: str | None,
    expires_in: timedelta = DEFAULT_EXPIRY,
) -> tuple[str, Identity]:
    """Exchange a normalized upstream identity for an internal session token."""
    token = issue_session_token(identity, secret, expires_in)
    logger.info(f"✅ Session token issued for user {identity.uid}")
    return token, identity
