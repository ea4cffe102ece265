"""Tests for the /messages and /uploads REST endpoints."""
import pytest
from starlette.datastructures import UploadFile

from courier.auth import USER_ID_HEADER
from courier.messages import router as messages_router
from courier.uploads.service import get_image_storage


def as_user(user_id: str) -> dict:
    return {USER_ID_HEADER: user_id}


@pytest.fixture
def chat_id(api_client):
    response = api_client.post("/chats", json={"otherUserId": "bob"}, headers=as_user("alice"))
    return response.json()["chatId"]


class TestSendMessage:

    def test_send_text(self, api_client, chat_id):
        response = api_client.post(
            "/messages", data={"chatId": chat_id, "text": "hello"}, headers=as_user("alice")
        )

        assert response.status_code == 201
        body = response.json()
        assert body["sender"] == "alice"
        assert body["message"]["chatId"] == chat_id
        assert body["message"]["text"] == "hello"
        assert body["message"]["messageType"] == "text"
        assert body["message"]["seen"] is False
        assert body["message"]["seenAt"] is None

    def test_unauthenticated(self, api_client, chat_id):
        response = api_client.post("/messages", data={"chatId": chat_id, "text": "hello"})
        assert response.status_code == 401

    def test_missing_chat_id(self, api_client):
        response = api_client.post("/messages", data={"text": "hello"}, headers=as_user("alice"))
        assert response.status_code == 400
        assert response.json() == {"message": "chatId required"}

    def test_missing_content_creates_nothing(self, api_client, chat_id, message_store):
        response = api_client.post("/messages", data={"chatId": chat_id}, headers=as_user("alice"))

        assert response.status_code == 400
        assert response.json() == {"message": "content required"}
        assert message_store.list_by_chat(chat_id) == []

    def test_unknown_chat(self, api_client):
        response = api_client.post(
            "/messages", data={"chatId": "missing", "text": "hi"}, headers=as_user("alice")
        )
        assert response.status_code == 404

    def test_non_participant(self, api_client, chat_id):
        response = api_client.post(
            "/messages", data={"chatId": chat_id, "text": "hi"}, headers=as_user("mallory")
        )
        assert response.status_code == 403

    def test_image_upload_and_download(self, api_client, chat_id):
        content = b"\x89PNG\r\n\x1a\nfake"
        response = api_client.post(
            "/messages",
            data={"chatId": chat_id},
            files={"image": ("cat.png", content, "image/png")},
            headers=as_user("alice"),
        )

        assert response.status_code == 201
        message = response.json()["message"]
        assert message["messageType"] == "image"
        assert message["text"] == ""

        download = api_client.get(message["image"]["url"])
        assert download.status_code == 200
        assert download.content == content

        chats = api_client.get("/chats", headers=as_user("bob")).json()["chats"]
        assert chats[0]["chat"]["latestMessage"] == {"text": "📷 Image", "sender": "alice"}

    def test_oversized_image_rejected(self, api_client, chat_id, message_store, monkeypatch):
        reads = []
        original_read = UploadFile.read

        async def recording_read(self, size=-1):
            reads.append(size)
            return await original_read(self, size)

        monkeypatch.setattr(UploadFile, "read", recording_read)

        response = api_client.post(
            "/messages",
            data={"chatId": chat_id},
            files={"image": ("big.png", b"x" * 2048, "image/png")},
            headers=as_user("alice"),
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Image exceeds size limit (1024 bytes)"}
        assert message_store.list_by_chat(chat_id) == []
        assert list(get_image_storage().upload_dir.iterdir()) == []
        # never buffers more than one byte past the limit
        assert reads == [1025]

    def test_oversized_image_unauthenticated_is_401(self, api_client, chat_id):
        response = api_client.post(
            "/messages",
            data={"chatId": chat_id},
            files={"image": ("big.png", b"x" * 4096, "image/png")},
        )

        assert response.status_code == 401

    def test_unexpected_failure_is_500(self, api_client, chat_id, monkeypatch):
        def broken_engine():
            raise RuntimeError("store offline")

        monkeypatch.setattr(messages_router, "get_delivery_engine", broken_engine)

        response = api_client.post(
            "/messages", data={"chatId": chat_id, "text": "hi"}, headers=as_user("alice")
        )

        assert response.status_code == 500
        assert response.json() == {"message": "store offline"}


class TestGetMessages:

    def test_fetch_marks_seen(self, api_client, chat_id):
        api_client.post("/messages", data={"chatId": chat_id, "text": "one"}, headers=as_user("alice"))
        api_client.post("/messages", data={"chatId": chat_id, "text": "two"}, headers=as_user("alice"))

        response = api_client.get(f"/messages/{chat_id}", headers=as_user("bob"))

        assert response.status_code == 200
        body = response.json()
        assert [m["text"] for m in body["messages"]] == ["one", "two"]
        assert all(m["seen"] for m in body["messages"])
        assert all(m["seenAt"] for m in body["messages"])
        assert body["user"] == {"id": "alice", "name": "User alice"}

        chats = api_client.get("/chats", headers=as_user("bob")).json()["chats"]
        assert chats[0]["chat"]["unseenCount"] == 0

    def test_sender_fetch_leaves_own_messages_unseen(self, api_client, chat_id):
        api_client.post("/messages", data={"chatId": chat_id, "text": "one"}, headers=as_user("alice"))

        body = api_client.get(f"/messages/{chat_id}", headers=as_user("alice")).json()

        assert body["messages"][0]["seen"] is False
        assert body["user"] == {"id": "bob", "name": "User bob"}

    def test_unauthenticated(self, api_client, chat_id):
        assert api_client.get(f"/messages/{chat_id}").status_code == 401

    def test_unknown_chat(self, api_client):
        assert api_client.get("/messages/missing", headers=as_user("alice")).status_code == 404

    def test_non_participant(self, api_client, chat_id):
        assert api_client.get(f"/messages/{chat_id}", headers=as_user("mallory")).status_code == 403


class TestUploads:

    def test_missing_file(self, api_client):
        response = api_client.get("/uploads/nothing.png")
        assert response.status_code == 404
        assert response.json() == {"message": "File not found"}


def test_health(api_client):
    assert api_client.get("/health").json() == {"status": "ok"}
