"""Tests for the presence registry and chat-room membership."""
from courier.realtime.presence import PresenceRegistry, is_valid_user_id
from courier.realtime.rooms import RoomMembership


class TestPresenceRegistry:
    """Tests for PresenceRegistry."""

    def test_register_and_lookup(self):
        registry = PresenceRegistry()
        assert registry.register("u1", "c1") is True
        assert registry.lookup("u1") == "c1"
        assert registry.online_users() == ["u1"]

    def test_lookup_absent_user(self):
        registry = PresenceRegistry()
        assert registry.lookup("nobody") is None

    def test_last_connect_wins(self):
        """A second tab replaces the first; only one entry per user."""
        registry = PresenceRegistry()
        registry.register("u1", "c1")
        registry.register("u1", "c2")
        assert registry.lookup("u1") == "c2"
        assert registry.online_users() == ["u1"]

    def test_register_is_idempotent(self):
        registry = PresenceRegistry()
        registry.register("u1", "c1")
        registry.register("u1", "c1")
        assert registry.lookup("u1") == "c1"

    def test_anonymous_ids_not_registered(self):
        registry = PresenceRegistry()
        assert registry.register("", "c1") is False
        assert registry.register("undefined", "c2") is False
        assert registry.online_users() == []

    def test_unregister(self):
        registry = PresenceRegistry()
        registry.register("u1", "c1")
        assert registry.unregister("u1") is True
        assert registry.lookup("u1") is None

    def test_unregister_absent_is_noop(self):
        registry = PresenceRegistry()
        assert registry.unregister("nobody") is False

    def test_stale_connection_does_not_evict_newer(self):
        """Closing an old tab keeps the newer tab's presence."""
        registry = PresenceRegistry()
        registry.register("u1", "old")
        registry.register("u1", "new")
        assert registry.unregister("u1", "old") is False
        assert registry.lookup("u1") == "new"
        assert registry.unregister("u1", "new") is True
        assert registry.lookup("u1") is None

    def test_is_valid_user_id(self):
        assert is_valid_user_id("abc")
        assert not is_valid_user_id(None)
        assert not is_valid_user_id("null")


class TestRoomMembership:
    """Tests for RoomMembership."""

    def test_join_and_leave(self):
        rooms = RoomMembership()
        rooms.add_connection("c1")
        assert not rooms.is_member("c1", "chat-1")

        rooms.join("c1", "chat-1")
        assert rooms.is_member("c1", "chat-1")

        rooms.leave("c1", "chat-1")
        assert not rooms.is_member("c1", "chat-1")

    def test_leave_room_never_joined(self):
        rooms = RoomMembership()
        rooms.leave("c1", "chat-1")
        assert not rooms.is_member("c1", "chat-1")

    def test_members(self):
        rooms = RoomMembership()
        rooms.join("c1", "chat-1")
        rooms.join("c2", "chat-1")
        rooms.join("c2", "chat-2")
        assert sorted(rooms.members("chat-1")) == ["c1", "c2"]
        assert rooms.members("chat-2") == ["c2"]
        assert rooms.rooms_of("c2") == {"chat-1", "chat-2"}

    def test_remove_connection_drops_all_rooms(self):
        rooms = RoomMembership()
        rooms.join("c1", "chat-1")
        rooms.join("c1", "chat-2")
        rooms.remove_connection("c1")
        assert rooms.members("chat-1") == []
        assert rooms.rooms_of("c1") == set()
