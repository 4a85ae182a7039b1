"""
Identity-provider token claims.

Kinde is the primary identity provider. Legacy users signing in through the
Firebase OIDC passthrough carry their Firebase uid/email as extra claims.
"""
from dataclasses import dataclass, field
from typing import Any, Optional
import logging
import os

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

PRIMARY_PROVIDER = os.getenv("IDP_PRIMARY_PROVIDER", "kinde")
LEGACY_PROVIDER = os.getenv("IDP_LEGACY_PROVIDER", "firebase")


@dataclass(frozen=True)
class TokenClaims:
    """Verified assertions about the caller from the identity provider."""

    sub: str
    email: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    picture: Optional[str] = None
    # Secondary (legacy) provider passthrough
    legacy_uid: Optional[str] = None
    legacy_email: Optional[str] = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: Optional[dict]) -> Optional["TokenClaims"]:
        """Build claims from a decoded token payload.

        Returns None when the subject or email is missing; such a token
        cannot identify anyone and the caller is treated as anonymous.
        """
        if not payload:
            return None

        sub = payload.get("sub")
        email = payload.get("email")
        if not sub or not email:
            logger.warning("Token payload missing sub or email; treating caller as anonymous")
            return None

        return cls(
            sub=str(sub),
            email=str(email),
            given_name=payload.get("given_name") or None,
            family_name=payload.get("family_name") or None,
            picture=payload.get("picture") or None,
            legacy_uid=payload.get("firebase_uid") or None,
            legacy_email=payload.get("firebase_email") or None,
            raw=dict(payload),
        )

    @property
    def display_name(self) -> Optional[str]:
        parts = [part for part in (self.given_name, self.family_name) if part]
        return " ".join(parts) if parts else None


def _verification_key() -> tuple[Optional[str], Optional[str]]:
    secret = os.getenv("AUTH_JWT_SECRET")
    if secret:
        return secret, "HS256"
    public_key = os.getenv("AUTH_JWT_PUBLIC_KEY")
    if public_key:
        return public_key, "RS256"
    return None, None


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """
    Decode a bearer token into its payload.

    With AUTH_JWT_SECRET or AUTH_JWT_PUBLIC_KEY configured the signature and
    expiry are verified (audience/issuer too when configured). Without a key
    the payload is decoded unverified, trusting the identity provider's
    session layer that issued it.

    Never raises: an undecodable token yields None.
    """
    key, algorithm = _verification_key()
    audience = os.getenv("AUTH_JWT_AUDIENCE")
    issuer = os.getenv("AUTH_JWT_ISSUER")

    try:
        if key:
            return jwt.decode(
                token,
                key,
                algorithms=[algorithm],
                audience=audience,
                issuer=issuer,
                options={"verify_aud": bool(audience)},
            )

        return jwt.get_unverified_claims(token)
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenClaims]:
    """
    FastAPI dependency: claims from the Authorization header, or None.

    Missing or unverifiable tokens are not an error here; the procedure
    chain decides whether an anonymous caller may proceed.
    """
    if credentials is None:
        return None

    claims = TokenClaims.from_payload(decode_token(credentials.credentials))
    if claims:
        logger.debug(f"Authenticated subject: {claims.sub}")
    return claims
