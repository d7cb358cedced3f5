import pytest

from mara.config import Settings
from mara.core.errors import BackendUnavailableError
from mara.core.models import Exchange, Session, StudentInfo
from mara.storage.continuity import CacheContinuityStore, DurableContinuityStore, build_continuity_store
from mara.storage.database import init_database
from mara.storage.models import Base, MessageRow, SessionRow, utc_naive_now


def make_session(session_id="s-1", chat_id="41234", name="Alex", student_number="410622548"):
    return Session(
        session_id=session_id,
        name=name,
        student_number=student_number,
        user_type="current",
        student_info=StudentInfo(level=4, semester="Fall 2025", course_count=5),
        chat_id=chat_id,
    )


def history_of(*pairs):
    return [{"role": role, "content": content, "timestamp": "2025-10-01T12:00:00+00:00"} for role, content in pairs]


EXCHANGE = Exchange("Is the gym fee optional?", "Remote students may qualify.", "fee_inquiry", "neutral")


# ---------------------------------------------------------
# Cache backend
# ---------------------------------------------------------

def test_cache_recover_unknown_chat_id(cache_store):
    assert cache_store.recover("49999") is None
    assert not cache_store.exists("49999")


def test_cache_round_trip_carries_identity_and_history(cache_store):
    history = history_of(("user", "Is the gym fee optional?"), ("assistant", "Remote students may qualify."))
    cache_store.save_exchange(make_session(), EXCHANGE, "Asked about gym fees.", history)

    recovered = cache_store.recover("41234")
    assert recovered.summary == "Asked about gym fees."
    assert recovered.name == "Alex"
    assert recovered.student_number == "410622548"
    assert [m["content"] for m in recovered.message_history] == [
        "Is the gym fee optional?",
        "Remote students may qualify.",
    ]
    assert cache_store.exists("41234")


def test_cache_last_write_wins(cache_store):
    cache_store.save_exchange(make_session("s-1"), EXCHANGE, "first", history_of(("user", "a")))
    cache_store.save_exchange(make_session("s-2", name="Sam"), EXCHANGE, "second", history_of(("user", "b")))

    record = cache_store.record("41234")
    assert record.summary == "second"
    assert record.last_session_id == "s-2"
    assert record.name == "Sam"


def test_cache_records_expire_after_thirty_days(cache_store, clock):
    cache_store.save_exchange(make_session(), EXCHANGE, "", history_of(("user", "a")))
    clock.advance(2592000)
    assert cache_store.recover("41234") is None


def test_cache_skips_session_without_chat_id(cache_store):
    cache_store.save_exchange(make_session(chat_id=None), EXCHANGE, "", [])
    assert len(cache_store._records) == 0


def test_cache_has_no_analytics(cache_store):
    with pytest.raises(BackendUnavailableError):
        cache_store.analytics(7)
    assert cache_store.durable is False


# ---------------------------------------------------------
# Durable backend
# ---------------------------------------------------------

def test_durable_recover_joins_session_and_messages(durable_store):
    durable_store.save_exchange(make_session(), EXCHANGE, "", [])
    durable_store.save_exchange(
        make_session(),
        Exchange("And the bus pass?", "Same policy applies.", "fee_inquiry", "neutral"),
        "Asked about gym and bus pass fees.",
        [],
    )

    recovered = durable_store.recover("41234")
    assert recovered.summary == "Asked about gym and bus pass fees."
    assert recovered.name == "Alex"
    assert recovered.student_number == "410622548"
    assert [m["role"] for m in recovered.message_history] == ["user", "assistant", "user", "assistant"]
    assert recovered.message_history[-1]["content"] == "Same policy applies."
    assert durable_store.exists("41234")
    assert not durable_store.exists("40000")


def test_durable_recover_limits_history_to_twenty(durable_store):
    for i in range(12):
        durable_store.save_exchange(make_session(), Exchange(f"q{i}", f"a{i}"), "", [])

    recovered = durable_store.recover("41234")
    assert len(recovered.message_history) == 20
    assert recovered.message_history[-1]["content"] == "a11"


def test_durable_user_row_carries_classification(durable_store):
    durable_store.save_exchange(make_session(), EXCHANGE, "", [])

    with durable_store.database.session() as db:
        rows = db.query(MessageRow).order_by(MessageRow.id).all()
        assert [(r.role, r.intent, r.emotional_state) for r in rows] == [
            ("user", "fee_inquiry", "neutral"),
            ("assistant", None, None),
        ]
        session_row = db.get(SessionRow, "s-1")
        assert session_row.chat_id == "41234"
        assert session_row.student_info["semester"] == "Fall 2025"


def test_durable_load_session_within_window(durable_store):
    durable_store.save_exchange(make_session(), EXCHANGE, "Asked about fees.", [])

    session = durable_store.load_session("s-1")
    assert session.name == "Alex"
    assert session.chat_id == "41234"
    assert session.previous_context == "Asked about fees."
    assert session.student_info.level == 4
    assert durable_store.load_session("missing") is None


def test_durable_load_session_ignores_stale_rows(durable_store):
    durable_store.save_exchange(make_session(), EXCHANGE, "", [])
    with durable_store.database.session() as db:
        db.get(SessionRow, "s-1").last_active = utc_naive_now().replace(year=2000)

    assert durable_store.load_session("s-1") is None


def test_durable_analytics_groups_by_intent_and_state(durable_store):
    durable_store.save_exchange(make_session("s-1"), EXCHANGE, "", [])
    durable_store.save_exchange(make_session("s-2", chat_id="42000"), EXCHANGE, "", [])
    durable_store.save_exchange(
        make_session("s-2", chat_id="42000"),
        Exchange("I feel hopeless", "Please reach out.", "emotional_support", "crisis"),
        "",
        [],
    )

    rows = durable_store.analytics(7)
    by_key = {(r["intent"], r["emotionalState"]): r for r in rows}

    assert by_key[("fee_inquiry", "neutral")]["count"] == 2
    assert by_key[("fee_inquiry", "neutral")]["totalSessions"] == 2
    assert by_key[("emotional_support", "crisis")]["count"] == 1
    assert by_key[(None, None)]["count"] == 3
    assert by_key[(None, None)]["activeUsers"] == 0


def test_durable_cleanup_removes_stale_sessions_and_messages(durable_store):
    durable_store.save_exchange(make_session("old", chat_id="41000"), EXCHANGE, "", [])
    durable_store.save_exchange(make_session("fresh", chat_id="42000"), EXCHANGE, "", [])
    with durable_store.database.session() as db:
        db.get(SessionRow, "old").last_active = utc_naive_now().replace(year=2000)

    assert durable_store.cleanup(30) == 1

    with durable_store.database.session() as db:
        assert db.get(SessionRow, "old") is None
        assert db.query(MessageRow).filter(MessageRow.session_id == "old").count() == 0
        assert db.query(MessageRow).filter(MessageRow.session_id == "fresh").count() == 2


def test_durable_failure_degrades_to_embedded_cache(durable_store):
    Base.metadata.drop_all(bind=durable_store.database.engine)

    durable_store.save_exchange(make_session(), EXCHANGE, "kept in cache", history_of(("user", "a")))

    recovered = durable_store.recover("41234")
    assert recovered.summary == "kept in cache"
    assert recovered.name == "Alex"
    assert durable_store.exists("41234")
    assert durable_store.load_session("s-1") is None

    with pytest.raises(BackendUnavailableError):
        durable_store.analytics(7)


def test_durable_recover_falls_back_to_cache_for_unknown_ids(durable_store):
    durable_store.fallback.save_exchange(make_session(chat_id="43000"), EXCHANGE, "outage write", [])
    assert durable_store.recover("43000").summary == "outage write"


# ---------------------------------------------------------
# Backend selection
# ---------------------------------------------------------

def test_build_without_database_url_uses_cache():
    store = build_continuity_store(Settings(database_url=None))
    assert isinstance(store, CacheContinuityStore)
    assert store.durable is False


def test_build_with_unreachable_database_uses_cache(tmp_path):
    url = f"sqlite:///{tmp_path / 'missing' / 'nested' / 'mara.db'}"
    store = build_continuity_store(Settings(database_url=url))
    assert isinstance(store, CacheContinuityStore)


def test_build_with_sqlite_uses_durable(tmp_path):
    store = build_continuity_store(Settings(database_url=f"sqlite:///{tmp_path / 'mara.db'}"))
    try:
        assert isinstance(store, DurableContinuityStore)
        assert store.durable is True
    finally:
        store.close()


def test_init_database_rejects_bad_url():
    assert init_database("not a url") is None
    assert init_database(None) is None


def test_session_history_is_scoped_to_one_session(durable_store, cache_store):
    durable_store.save_exchange(make_session("s-1"), EXCHANGE, "", [])
    durable_store.save_exchange(make_session("s-2"), Exchange("Bus pass?", "Mandatory."), "", [])

    assert [m["role"] for m in durable_store.session_history("s-1")] == ["user", "assistant"]
    assert durable_store.session_history("s-2")[0]["content"] == "Bus pass?"
    assert durable_store.session_history("missing") == []
    assert cache_store.session_history("s-1") == []
