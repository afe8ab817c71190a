"""Firebase sign-in over the Identity Toolkit REST API."""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

import jwt
import requests

from cda_anxiety.errors import CdaError

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"


class IdentityError(CdaError):
    """Sign-in response could not be turned into a user identity."""


@dataclass
class IdentitySession:
    uid: str
    id_token: str
    anonymous: bool = True
    refresh_token: Optional[str] = None
    # Naive UTC, the form google-auth compares credential expiry in.
    expires_at: Optional[datetime] = None


class IdentityProvider(Protocol):
    def sign_in(
        self,
        on_ready: Callable[[IdentitySession], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        """Start sign-in; exactly one of the callbacks is invoked later."""


def uid_from_id_token(id_token: str) -> str:
    # Only the uid is needed here; the backend verifies the token itself.
    claims = jwt.decode(id_token, options={"verify_signature": False})
    uid = claims.get("user_id") or claims.get("sub")
    if not uid:
        raise IdentityError("ID token carries no user id")
    return uid


def expiry_from_seconds(expires_in) -> Optional[datetime]:
    if expires_in is None:
        return None
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError) as e:
        raise IdentityError(f"Invalid token lifetime: {expires_in!r}") from e
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now + timedelta(seconds=seconds)


def _json_object(response) -> dict:
    response.raise_for_status()
    data = response.json()
    if not isinstance(data, dict):
        raise IdentityError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class FirebaseIdentity:
    """Anonymous sign-up, or custom-token exchange when a token is supplied."""

    def __init__(self, api_key: str, custom_token: str | None = None, timeout: float = 10,
                 session: requests.Session | None = None):
        self.api_key = api_key
        self.custom_token = custom_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, endpoint: str, payload: dict) -> dict:
        response = self.session.post(
            f"{IDENTITY_TOOLKIT_URL}/{endpoint}",
            params={"key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        return _json_object(response)

    def sign_in_blocking(self) -> IdentitySession:
        if self.custom_token:
            data = self._post("accounts:signInWithCustomToken",
                              {"token": self.custom_token, "returnSecureToken": True})
        else:
            data = self._post("accounts:signUp", {"returnSecureToken": True})
        id_token = data.get("idToken")
        if not id_token:
            raise IdentityError("Sign-in response has no idToken")
        uid = data.get("localId") or uid_from_id_token(id_token)
        return IdentitySession(
            uid=uid,
            id_token=id_token,
            anonymous=not self.custom_token,
            refresh_token=data.get("refreshToken"),
            expires_at=expiry_from_seconds(data.get("expiresIn")),
        )

    def refresh(self, current: IdentitySession) -> IdentitySession:
        """Exchange the refresh token for a new ID token for the same user."""
        if not current.refresh_token:
            raise IdentityError(f"No refresh token for {current.uid}")
        response = self.session.post(
            SECURE_TOKEN_URL,
            params={"key": self.api_key},
            data={"grant_type": "refresh_token", "refresh_token": current.refresh_token},
            timeout=self.timeout,
        )
        data = _json_object(response)
        id_token = data.get("id_token")
        if not id_token:
            raise IdentityError("Refresh response has no id_token")
        uid = data.get("user_id") or current.uid
        if uid != current.uid:
            raise IdentityError(f"Refresh returned user {uid}, expected {current.uid}")
        logger.info("Refreshed ID token for %s", uid)
        return IdentitySession(
            uid=uid,
            id_token=id_token,
            anonymous=current.anonymous,
            refresh_token=data.get("refresh_token") or current.refresh_token,
            expires_at=expiry_from_seconds(data.get("expires_in")),
        )

    def sign_in(self, on_ready, on_error) -> None:
        def worker():
            try:
                session = self.sign_in_blocking()
            except Exception as e:
                logger.warning("Auth error: %s", e)
                on_error(e)
                return
            logger.info("Signed in as %s (anonymous=%s)", session.uid, session.anonymous)
            on_ready(session)

        threading.Thread(target=worker, name="cda-sign-in", daemon=True).start()
