from typing import Optional

from pydantic import BaseModel

from app.models.chat import CamelModel


class Identity(BaseModel):
    """Decoded session-token identity attached to each authenticated request."""
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None


class FirebaseUser(CamelModel):
    """Identity fields as reported by the client after Firebase sign-in."""
    uid: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None


class VerifyRequest(CamelModel):
    firebase_token: Optional[str] = None
    user: Optional[FirebaseUser] = None


class VerifyResponse(BaseModel):
    token: str
    user: Identity
