"""Tests for SessionStore."""

from ordersub.models import Session, Step
from ordersub.session_store import SessionStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSessionStore:
    def test_unknown_chat_gets_idle_session(self, sessions):
        assert sessions.get("42") == Session()

    def test_get_returns_copy(self, sessions):
        session = Session(step=Step.NAME)
        sessions.set("42", session)

        fetched = sessions.get("42")
        fetched.step = Step.PHONE
        fetched.form.full_name = "Changed"

        stored = sessions.get("42")
        assert stored.step is Step.NAME
        assert stored.form.full_name == ""

    def test_clear(self, sessions):
        sessions.set("42", Session(step=Step.NAME))
        sessions.clear("42")

        assert len(sessions) == 0

    def test_ttl_expiry(self):
        clock = FakeClock()
        sessions = SessionStore(ttl=60, clock=clock)
        sessions.set("42", Session(step=Step.EMAIL))

        clock.now = 59
        assert sessions.get("42").step is Step.EMAIL
        clock.now = 61
        assert sessions.get("42").is_idle
        assert len(sessions) == 0

    def test_evict_expired(self):
        clock = FakeClock()
        sessions = SessionStore(ttl=60, clock=clock)
        sessions.set("1", Session(step=Step.NAME))
        clock.now = 30
        sessions.set("2", Session(step=Step.NAME))
        clock.now = 70

        assert sessions.evict_expired() == 1
        assert len(sessions) == 1

    def test_full_store_drops_oldest(self):
        clock = FakeClock()
        sessions = SessionStore(ttl=1000, max_sessions=2, clock=clock)
        for i, chat in enumerate(["a", "b", "c"]):
            clock.now = i
            sessions.set(chat, Session(step=Step.NAME))

        assert len(sessions) == 2
        assert sessions.get("a").is_idle
        assert sessions.get("c").step is Step.NAME

    def test_lock_is_shared_per_chat(self):
        sessions = SessionStore()
        first = sessions.lock("42")

        assert sessions.lock("42") is first
        assert sessions.lock("77") is not first

    def test_lock_is_reentrant(self):
        sessions = SessionStore()

        with sessions.lock("42"):
            with sessions.lock("42"):
                sessions.set("42", Session(step=Step.NAME))

        assert sessions.get("42").step is Step.NAME
