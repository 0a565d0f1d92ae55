"""Decoding of opaque session tokens issued by the service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

import jwt

from yeep_client.errors import DecodeError


@dataclass(frozen=True)
class DecodedToken:
    claims: Dict[str, Any]
    expires_at: datetime

    @property
    def payload(self) -> Any:
        """The application payload embedded in the token, or all claims."""

        return self.claims.get("payload", self.claims)


def decode_token(token: str) -> DecodedToken:
    """Read the claims of ``token`` without verifying its signature.

    Signature checks belong to the service; the client only needs the expiry.
    """

    try:
        claims = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.InvalidTokenError as exc:
        raise DecodeError(f"Invalid session token: {exc}") from exc
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise DecodeError("Session token has no numeric 'exp' claim")
    try:
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise DecodeError(f"Session token 'exp' claim out of range: {exp}") from exc
    return DecodedToken(claims=claims, expires_at=expires_at)
