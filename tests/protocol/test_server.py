"""Tests for control socket request handling and the client round trip."""

import time

import pytest

from music_player.domain.playback.commands import Play
from music_player.domain.playback.state import PlayerSnapshot, PlayerState, SnapshotPublisher
from music_player.protocol.adapter import ProtocolAdapter
from music_player.protocol.client import send_request
from music_player.protocol.server import SocketProtocolBackend


@pytest.fixture
def sent():
    return []


@pytest.fixture
def server(tmp_path, library, sent):
    publisher = SnapshotPublisher(PlayerSnapshot(state=PlayerState(), library=library))
    adapter = ProtocolAdapter(publisher, sent.append)
    backend = SocketProtocolBackend(tmp_path / "control.sock")
    adapter.attach(backend)
    yield backend
    adapter.detach()


class TestHandleRequest:
    def test_get_single_property(self, server):
        reply = server.handle_request({"get": "PlaybackStatus"})
        assert reply == {"success": True, "message": "ok", "data": "Stopped"}

    def test_get_all_properties(self, server):
        reply = server.handle_request({"get": "*"})
        assert reply["data"]["Identity"] == "Music Player"

    def test_unknown_property(self, server):
        reply = server.handle_request({"get": "Colour"})
        assert reply["success"] is False

    def test_method_call(self, server, sent):
        reply = server.handle_request({"method": "Play", "args": []})
        assert reply["success"] is True
        assert sent == [Play()]

    @pytest.mark.parametrize(
        "payload", [{"get": []}, {"get": {"name": "Volume"}}, {"method": ["Play"]}, {"method": 5}]
    )
    def test_non_string_names_are_faults(self, server, sent, payload):
        reply = server.handle_request(payload)
        assert reply["success"] is False
        assert sent == []

    def test_args_must_be_a_list(self, server):
        reply = server.handle_request({"method": "Seek", "args": 5})
        assert reply["success"] is False

    def test_non_object_request(self, server):
        assert server.handle_request(["Play"])["success"] is False

    def test_changes_are_drained(self, server):
        server.properties_changed({"Volume": 0.3})
        assert server.handle_request({"get": "changes"})["data"] == [{"Volume": 0.3}]
        assert server.handle_request({"get": "changes"})["data"] == []

    def test_unstarted_server(self, tmp_path):
        backend = SocketProtocolBackend(tmp_path / "unused.sock")
        assert backend.handle_request({"get": "*"})["success"] is False


def wait_until_listening(server):
    # The server binds on its own thread; retry until it answers
    for _ in range(50):
        success, _, _ = send_request({"get": "PlaybackStatus"}, server.socket_path)
        if success:
            return
        time.sleep(0.05)
    pytest.fail("control socket never started listening")


class TestClient:
    def test_round_trip_over_socket(self, server, sent):
        wait_until_listening(server)
        success, message, _ = send_request({"method": "Play"}, server.socket_path)
        assert success is True
        assert message == "Playing"
        assert sent == [Play()]

    def test_bad_request_keeps_server_running(self, server):
        wait_until_listening(server)
        success, _, _ = send_request({"get": []}, server.socket_path)
        assert success is False
        assert server.thread.is_alive()
        success, _, data = send_request({"get": "PlaybackStatus"}, server.socket_path)
        assert success is True
        assert data == "Stopped"

    def test_handler_crash_keeps_server_running(self, server, monkeypatch):
        wait_until_listening(server)

        def crash(payload):
            raise RuntimeError("boom")

        monkeypatch.setattr(server, "handle_request", crash)
        success, _, _ = send_request({"get": "PlaybackStatus"}, server.socket_path)
        assert success is False
        monkeypatch.undo()
        assert server.thread.is_alive()
        success, _, _ = send_request({"get": "PlaybackStatus"}, server.socket_path)
        assert success is True

    def test_not_running(self, tmp_path):
        success, message, data = send_request({"get": "*"}, tmp_path / "absent.sock")
        assert success is False
        assert data is None
