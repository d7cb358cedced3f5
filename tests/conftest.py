from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mara.api.http_api import create_app
from mara.config import Settings
from mara.core.container import build_services
from mara.core.errors import UpstreamError
from mara.memory.conversation_memory import SUMMARY_SYSTEM_PROMPT
from mara.storage.continuity import CacheContinuityStore, DurableContinuityStore
from mara.storage.database import init_database


KNOWLEDGE_FILE = Path(__file__).resolve().parent.parent / "data" / "knowledge.json"


class FakeLLM:
    """Scripted stand-in for `LLMService`.

    Each attribute holds the raw text returned for that kind of call; `None`
    makes the call fail the way an unreachable provider does.
    """

    def __init__(self, classification=None, reply=None, summary=None):
        self.classification = classification
        self.reply = reply
        self.summary = summary
        self.calls = []

    def complete(self, messages, **params):
        system = messages[0]["content"] if messages else ""
        if system.startswith("You are an intent classifier"):
            kind, value = "classify", self.classification
        elif system == SUMMARY_SYSTEM_PROMPT:
            kind, value = "summary", self.summary
        else:
            kind, value = "reply", self.reply

        self.calls.append({"kind": kind, "messages": messages, "params": params})
        if value is None:
            raise UpstreamError("FAKE HTTP ERROR (503)", provider="fake", status=503)
        return value

    def count(self, kind):
        return sum(1 for call in self.calls if call["kind"] == kind)


class ManualClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def settings():
    return Settings(database_url=None, knowledge_path=str(KNOWLEDGE_FILE))


@pytest.fixture
def cache_store(clock):
    return CacheContinuityStore(2592000, clock=clock)


@pytest.fixture
def durable_store(tmp_path, clock):
    database = init_database(f"sqlite:///{tmp_path / 'mara.db'}")
    assert database is not None
    store = DurableContinuityStore(database, fallback=CacheContinuityStore(2592000, clock=clock))
    yield store
    store.close()


@pytest.fixture
def services(settings, llm, clock):
    return build_services(settings, llm=llm, clock=clock)


@pytest.fixture
def durable_services(settings, llm, clock, durable_store):
    return build_services(settings, llm=llm, continuity=durable_store, clock=clock)


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def durable_client(durable_services):
    return TestClient(create_app(durable_services))
