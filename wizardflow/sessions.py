"""Issuing and verifying workflow session tokens."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt

from .constants import DEFAULT_AUTO_SAVE_INTERVAL, WORKFLOW_SESSION_DURATION
from .contracts import AutoSaveConfig, WorkflowSession, utcnow
from .errors import SessionExpiredError

_ALGORITHM = "HS256"


class SessionIssuer:
    """Mints HS256-signed session tokens bound to a workflow id."""

    def __init__(
        self,
        secret: str,
        duration_seconds: int = WORKFLOW_SESSION_DURATION,
        clock: Callable[[], datetime] = utcnow,
        auto_save_interval: float = DEFAULT_AUTO_SAVE_INTERVAL,
    ) -> None:
        self._secret = secret
        self._duration = timedelta(seconds=duration_seconds)
        self._clock = clock
        self._auto_save_interval = auto_save_interval

    def issue(
        self, workflow_id: str, auto_save: Optional[AutoSaveConfig] = None
    ) -> WorkflowSession:
        now = self._clock()
        expires_at = now + self._duration
        token = jwt.encode(
            {"sub": workflow_id, "iat": now, "exp": expires_at},
            self._secret,
            algorithm=_ALGORITHM,
        )
        return WorkflowSession(
            workflow_id=workflow_id,
            session_token=token,
            expires_at=expires_at,
            auto_save=auto_save
            or AutoSaveConfig(enabled=True, interval_seconds=self._auto_save_interval),
        )

    def verify(self, token: str) -> str:
        """Return the workflow id the token was issued for."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as e:
            raise SessionExpiredError(f"Invalid session token: {e}") from e
        # Expiry is checked against the injected clock rather than wall time.
        if self._clock().timestamp() >= claims["exp"]:
            raise SessionExpiredError("Session token has expired")
        return claims["sub"]

    def extend(self, session: WorkflowSession) -> WorkflowSession:
        """Return a renewed session for the same workflow."""
        return self.issue(session.workflow_id, session.auto_save)
