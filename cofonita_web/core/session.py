"""Server-side sessions keyed by a signed cookie identifier.

The cookie only carries a JWT wrapping a random session id; the session
record itself lives in a ``SessionStore``. The in-memory store is process
local, so sessions do not survive restarts or span multiple workers.
"""

import logging
import secrets
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Protocol

import jwt
from cachetools import TTLCache  # type: ignore[import-untyped]
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from cofonita_web.models import User

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Key-value store for session records with TTL semantics."""

    def get(self, sid: str) -> dict[str, Any] | None: ...

    def set(self, sid: str, data: dict[str, Any]) -> None: ...

    def delete(self, sid: str) -> None: ...


class MemorySessionStore:
    """In-process session store backed by ``cachetools.TTLCache``"""

    def __init__(
        self,
        ttl: float,
        maxsize: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    def get(self, sid: str) -> dict[str, Any] | None:
        return self._cache.get(sid)

    def set(self, sid: str, data: dict[str, Any]) -> None:
        self._cache[sid] = data

    def delete(self, sid: str) -> None:
        self._cache.pop(sid, None)

    def __len__(self) -> int:
        return len(self._cache)


class SessionSigner:
    """Sign and verify session ids as short-lived JWTs"""

    def __init__(self, secret_key: str, max_age: int, algorithm: str = "HS256"):
        if not secret_key:
            raise ValueError("Session secret cannot be empty")

        self.secret_key = secret_key
        self.max_age = max_age
        self.algorithm = algorithm

    def sign(self, sid: str) -> str:
        now = datetime.now(UTC)
        payload = {"sid": sid, "iat": now, "exp": now + timedelta(seconds=self.max_age)}
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def unsign(self, token: str) -> str | None:
        """Return the session id, or None when the cookie is forged or expired"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.debug("Session cookie expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session cookie: {e}")
            return None

        sid = payload.get("sid")
        return sid if isinstance(sid, str) else None


class Session:
    """Mutable view of one session record for the duration of a request"""

    def __init__(self, sid: str | None = None, data: dict[str, Any] | None = None):
        self.sid = sid
        self.data: dict[str, Any] = data or {}
        self.modified = False
        self.destroyed = False

    @property
    def user(self) -> User | None:
        raw = self.data.get("user")
        return User.model_validate(raw) if raw else None

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.modified = True

    def pop(self, key: str) -> Any:
        if key not in self.data:
            return None
        self.modified = True
        return self.data.pop(key)

    def login(self, user: User) -> None:
        """Store the user, rotating the session id"""
        self.sid = None
        self.data = {"user": user.model_dump()}
        self.modified = True
        self.destroyed = False

    def destroy(self) -> None:
        self.data = {}
        self.destroyed = True
        self.modified = False


class SessionMiddleware(BaseHTTPMiddleware):
    """Load ``request.state.session`` and persist it after the handler"""

    def __init__(
        self,
        app: ASGIApp,
        store: SessionStore,
        secret_key: str,
        cookie_name: str,
        max_age: int,
        secure: bool = False,
        samesite: Literal["lax", "strict", "none"] = "lax",
    ):
        super().__init__(app)
        self.store = store
        self.signer = SessionSigner(secret_key, max_age)
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure
        self.samesite = samesite

    def _load(self, request: Request) -> tuple[Session, str | None]:
        cookie = request.cookies.get(self.cookie_name)
        if not cookie:
            return Session(), None

        sid = self.signer.unsign(cookie)
        if sid is None:
            return Session(), None

        data = self.store.get(sid)
        if data is None:
            return Session(), sid
        return Session(sid, dict(data)), sid

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session, previous_sid = self._load(request)
        request.state.session = session

        response = await call_next(request)

        if session.destroyed:
            if previous_sid:
                self.store.delete(previous_sid)
            response.delete_cookie(
                self.cookie_name,
                path="/",
                httponly=True,
                secure=self.secure,
                samesite=self.samesite,
            )
        elif session.modified:
            if previous_sid and previous_sid != session.sid:
                self.store.delete(previous_sid)
            if session.sid is None:
                session.sid = secrets.token_urlsafe(32)
            self.store.set(session.sid, session.data)
            response.set_cookie(
                self.cookie_name,
                self.signer.sign(session.sid),
                max_age=self.max_age,
                path="/",
                httponly=True,
                secure=self.secure,
                samesite=self.samesite,
            )

        return response
