import pytest
from fastapi.testclient import TestClient

from qmdash import llm
from qmdash.main import app
from qmdash.models import Agent
from qmdash.store import MemoryStore, get_store

ROSTER = [
    Agent(id=1, name="Alice Smith"),
    Agent(id=2, name="Robert Jones"),
    Agent(id=3, name="Priya Patel"),
]


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(agents=ROSTER)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fake_llm(monkeypatch):
    """Replace the model call; set .reply to a string or .error to an exception."""

    class FakeLLM:
        reply: str = "{}"
        error: Exception | None = None
        calls: list[tuple[str, str]] = []

        async def __call__(self, system_prompt: str, user_message: str, temperature=None) -> str:
            self.calls.append((system_prompt, user_message))
            if self.error is not None:
                raise self.error
            return self.reply

    fake = FakeLLM()
    fake.calls = []
    monkeypatch.setattr(llm, "chat_json", fake)
    return fake
