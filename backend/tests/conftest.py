"""Shared test fixtures and configuration for backend tests."""
import httpx
import pytest
from fastapi.testclient import TestClient

from courier.chats.store import ChatStore
from courier.main import app
from courier.messages.store import MessageStore
from courier.profiles.client import UserProfileClient, set_profile_client
from courier.realtime.manager import manager
from courier.storage import Database
from courier.uploads.service import ImageStorage, set_image_storage

# User ids the fake profile service refuses to resolve
UNRESOLVABLE_USERS = {"ghost"}


def profile_handler(request: httpx.Request) -> httpx.Response:
    """Fake user service: /api/v1/user/{id} -> {"id", "name"}."""
    user_id = request.url.path.rsplit("/", 1)[-1]
    if user_id in UNRESOLVABLE_USERS:
        return httpx.Response(503, json={"message": "down"})
    return httpx.Response(200, json={"id": user_id, "name": f"User {user_id}"})


class FakeWebSocket:
    """Records frames sent to it, standing in for a live WebSocket."""

    def __init__(self) -> None:
        self.sent = []

    async def send_json(self, message: dict) -> None:
        self.sent.append(message)

    def events(self, event_type: str) -> list:
        return [frame["data"] for frame in self.sent if frame["type"] == event_type]


class BrokenWebSocket(FakeWebSocket):
    """A connection whose every send fails."""

    async def send_json(self, message: dict) -> None:
        raise RuntimeError("connection reset")


@pytest.fixture(autouse=True)
def fresh_state(tmp_path):
    """Give every test an empty in-memory database, registry and uploads dir."""
    Database.reset_instance()
    Database.get_instance(db_path=":memory:")
    manager.clear()
    set_profile_client(
        UserProfileClient("http://users.test", transport=httpx.MockTransport(profile_handler))
    )
    set_image_storage(ImageStorage(str(tmp_path / "uploads"), max_bytes=1024))
    yield
    manager.clear()
    set_profile_client(None)
    set_image_storage(None)
    Database.reset_instance()


@pytest.fixture
def db() -> Database:
    return Database.get_instance()


@pytest.fixture
def chat_store(db) -> ChatStore:
    return ChatStore(db)


@pytest.fixture
def message_store(db) -> MessageStore:
    return MessageStore(db)


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app."""
    return TestClient(app)
