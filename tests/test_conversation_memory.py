from mara.core.results import Degraded, Ok
from mara.memory.conversation_memory import (
    MAX_HISTORY,
    ConversationMemory,
    summarize_messages_pure,
    transcript_digest,
)


def test_append_caps_history_fifo(clock):
    memory = ConversationMemory(clock=clock)
    for i in range(25):
        memory.append("s1", "user", f"message {i}")

    history = memory.full("s1")
    assert len(history) == MAX_HISTORY
    assert history[0]["content"] == "message 5"
    assert history[-1]["content"] == "message 24"


def test_append_returns_copy(clock):
    memory = ConversationMemory(clock=clock)
    returned = memory.append("s1", "user", "hi")
    returned.append({"role": "user", "content": "injected"})
    returned[0]["content"] = "changed"

    assert [m["content"] for m in memory.full("s1")] == ["hi"]


def test_recent_returns_role_and_content_oldest_first(clock):
    memory = ConversationMemory(clock=clock)
    memory.append("s1", "user", "one")
    memory.append("s1", "assistant", "two")
    memory.append("s1", "user", "three")

    assert memory.recent("s1", 2) == [
        {"role": "assistant", "content": "two"},
        {"role": "user", "content": "three"},
    ]
    assert memory.recent("s1", 0) == []
    assert memory.recent("unknown", 5) == []


def test_history_expires_after_ttl_since_last_write(clock):
    memory = ConversationMemory(ttl_seconds=100, clock=clock)
    memory.append("s1", "user", "hi")
    clock.advance(60)
    memory.append("s1", "assistant", "hello")
    clock.advance(60)
    assert len(memory.full("s1")) == 2
    clock.advance(41)
    assert memory.full("s1") == []


def test_stats(clock):
    memory = ConversationMemory(clock=clock)
    memory.append("s1", "user", "a")
    memory.append("s1", "assistant", "b")
    memory.append("s1", "user", "c")

    stats = memory.stats("s1")
    assert stats["messageCount"] == 3
    assert stats["userMessages"] == 2
    assert stats["assistantMessages"] == 1
    assert stats["duration"] >= 0

    assert memory.stats("none") == {"messageCount": 0, "userMessages": 0, "assistantMessages": 0, "duration": 0}


def test_replay_seeds_buffer_and_skips_invalid_entries(clock):
    memory = ConversationMemory(clock=clock)
    kept = memory.replay("s2", [
        {"role": "user", "content": "earlier", "timestamp": "2025-01-01T00:00:00+00:00"},
        {"role": "system", "content": "ignored"},
        "garbage",
        {"role": "assistant", "content": "reply"},
    ])

    assert kept == 2
    history = memory.full("s2")
    assert [m["content"] for m in history] == ["earlier", "reply"]
    assert history[0]["timestamp"] == "2025-01-01T00:00:00+00:00"


def test_clear(clock):
    memory = ConversationMemory(clock=clock)
    memory.append("s1", "user", "hi")
    memory.clear("s1")
    assert memory.full("s1") == []


def test_summarize_below_threshold_skips_provider(clock, llm):
    memory = ConversationMemory(clock=clock)
    memory.append("s1", "user", "hi")
    memory.append("s1", "assistant", "hello")

    assert not memory.should_summarize("s1")
    assert memory.summarize("s1", llm) == Ok("")
    assert llm.calls == []


def test_summarize_uses_provider(clock, llm):
    llm.summary = "  Student asked about gym fees.  "
    memory = ConversationMemory(clock=clock)
    for text in ("gym fee?", "It is charged to full-time students.", "Can I opt out?"):
        memory.append("s1", "user", text)

    assert memory.should_summarize("s1")
    result = memory.summarize("s1", llm)
    assert result == Ok("Student asked about gym fees.")
    assert llm.calls[0]["params"] == {"max_tokens": 150, "temperature": 0.3}


def test_summarize_degrades_to_digest_on_failure(clock, llm):
    memory = ConversationMemory(clock=clock)
    memory.append("s1", "user", "gym fee?")
    memory.append("s1", "assistant", "It is charged.")
    memory.append("s1", "user", "Can I opt out?")

    result = memory.summarize("s1", llm)
    assert isinstance(result, Degraded)
    assert result.value == "Student asked about: gym fee? | Can I opt out?"


def test_summarize_messages_pure_skips_bad_items():
    assert summarize_messages_pure(None) == ""
    assert summarize_messages_pure([{"role": "user", "content": " hi "}, "x", {"content": ""}]) == "user: hi"


def test_transcript_digest_is_bounded():
    messages = [{"role": "user", "content": "x" * 1000}]
    digest = transcript_digest(messages)
    assert len(digest) <= 600
    assert digest.endswith("...")
    assert transcript_digest([{"role": "assistant", "content": "only me"}]) == ""
