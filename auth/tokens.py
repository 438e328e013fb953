"""
auth/tokens.py -- Access and refresh JWT issuance and verification.

Security design decisions:
  Two secrets: access tokens are signed with ACCESS_TOKEN_SECRET, refresh
       tokens with REFRESH_TOKEN_SECRET. Settings refuses to start when they
       are equal, so a token minted for one path never verifies on the other.

  Access tokens: python-jose HS256 with user_id, email, iat and exp. They are
       stateless and never stored; the only way to retire one is to let exp
       pass, which is why the lifetime is short (15 minutes by default).

  Refresh tokens: user_id, email, token_id and iat, no exp. Their 7-day
       validity lives on the persisted RefreshTokenRecord so that revocation
       and expiry are decided by the store on every use.

  Verification raises typed errors from auth.errors instead of returning None
  so the session service can tell "expired" apart from "forged".
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import InvalidToken, TokenExpired
from auth.models import AccessClaims, RefreshClaims

_ALGORITHM = "HS256"


class TokenIssuer:
    """Mints and verifies the two token kinds.

    Usage:
        issuer = TokenIssuer(access_secret, refresh_secret)
        token = issuer.issue_access_token(user.id, user.email)
        claims = issuer.verify_access(token)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_ttl = access_ttl

    @property
    def access_ttl_seconds(self) -> int:
        return int(self.access_ttl.total_seconds())

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, user_id: str, email: str, now: datetime | None = None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "email": email,
            "iat": issued,
            "exp": issued + self.access_ttl,
        }
        return jwt.encode(payload, self._access_secret, algorithm=_ALGORITHM)

    def issue_refresh_token(self, user_id: str, email: str, token_id: str, now: datetime | None = None) -> str:
        payload = {
            "user_id": user_id,
            "email": email,
            "token_id": token_id,
            "iat": now or datetime.now(timezone.utc),
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> AccessClaims:
        """Return the identity carried by an access token.

        Raises TokenExpired when exp has passed and InvalidToken for anything
        else: bad signature, wrong secret, malformed token, missing claims.
        """
        try:
            payload = jwt.decode(token, self._access_secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidToken() from exc
        if "exp" not in payload:
            raise InvalidToken()
        return AccessClaims(user_id=_claim(payload, "user_id"), email=_claim(payload, "email"))

    def verify_refresh(self, token: str) -> RefreshClaims:
        """Return the claims of a refresh token. Raises InvalidToken on any failure."""
        try:
            payload = jwt.decode(token, self._refresh_secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise InvalidToken("Invalid refresh token.") from exc
        return RefreshClaims(
            user_id=_claim(payload, "user_id"),
            email=_claim(payload, "email"),
            token_id=_claim(payload, "token_id"),
        )


def _claim(payload: dict, name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value:
        raise InvalidToken()
    return value
