from __future__ import annotations

from cofonita_web.core.session import MemorySessionStore, Session, SessionSigner
from cofonita_web.models import User


def test_store_expires_records_after_ttl(clock) -> None:
    store = MemorySessionStore(ttl=60, timer=clock)
    store.set("abc", {"user": {"id": "1"}})

    clock.advance(59)
    assert store.get("abc") == {"user": {"id": "1"}}

    clock.advance(1)
    assert store.get("abc") is None


def test_store_delete_is_idempotent() -> None:
    store = MemorySessionStore(ttl=60)
    store.set("abc", {})
    store.delete("abc")
    store.delete("abc")
    assert store.get("abc") is None
    assert len(store) == 0


def test_signer_roundtrip_and_rejections() -> None:
    signer = SessionSigner("secret", max_age=3600)
    token = signer.sign("sid-1")

    assert signer.unsign(token) == "sid-1"
    assert SessionSigner("other-secret", max_age=3600).unsign(token) is None
    assert signer.unsign("not-a-token") is None
    assert SessionSigner("secret", max_age=-10).unsign(SessionSigner("secret", max_age=-10).sign("x")) is None


def test_session_login_rotates_id_and_destroy_clears() -> None:
    session = Session("old", {"user": None})
    session.login(User(id="7", username="u"))

    assert session.sid is None
    assert session.modified
    assert session.user is not None and session.user.id == "7"

    session.destroy()
    assert session.destroyed
    assert session.user is None
