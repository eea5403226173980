"""
Authentication Models

The owner id issued here scopes every row a user can read or write.
"""

from datetime import datetime
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """A registered account as stored in the users table."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: UUID = Field(default_factory=uuid4)
    email: str = Field(..., min_length=3, max_length=254)
    password_hash: str
    confirmed: bool = False
    confirmation_token: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Session(BaseModel):
    """The signed-in principal. ``user_id`` is the owner id."""

    user_id: UUID
    email: str
    access_token: str
    signed_in_at: datetime = Field(default_factory=datetime.utcnow)


class SignUpResult(BaseModel):
    """
    A sign-up waiting for email confirmation.

    ``confirmation_link`` is what the user opens to activate the
    account; it cannot sign in until ``confirm`` is called with the token.
    """

    user_id: UUID
    email: str
    pending_confirmation: bool = True
    redirect_to: str
    confirmation_token: str

    @property
    def confirmation_link(self) -> str:
        """``redirect_to`` with the token added as a ``token`` query parameter."""
        parts = urlsplit(self.redirect_to)
        query = urlencode({"token": self.confirmation_token})
        if parts.query:
            query = f"{parts.query}&{query}"
        return urlunsplit(parts._replace(query=query))
