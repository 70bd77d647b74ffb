"""
End-to-end tests against a running CommandServer over real sockets.
"""

import socket
import threading
import time

import pytest

from adbenabler import BindError, CommandServer, QueueNotificationSink, ServerConfig
from adbenabler.collaborators import AutomationError
from adbenabler.store import SECRET_KEY_PREF, FileSecretStore

from tests.conftest import (
    SECRET,
    RecordingAutomation,
    build_request,
    parse_response,
    post,
    read_all,
    send_raw,
)


def pair(port: int, secret: str = SECRET):
    status, body = post(port, "/set-secret", {"secretKey": secret})
    assert (status, body) == (200, "Secret key set.")


class TestPairingFlow:
    """Secret setup followed by protected requests."""

    def test_set_secret_then_data(self, server, sink):
        """Test the happy path from pairing to credential delivery."""
        pair(server.port)

        status, body = post(
            server.port,
            "/data",
            {"secretKey": SECRET, "passwordType": "pin", "password": "1234"},
        )

        assert status == 200
        assert body == "Password data received."
        assert sink.published == [("pin", "1234")]

    def test_data_before_secret(self, server, sink):
        """Test that /data is refused until a secret is set."""
        status, body = post(server.port, "/data", {"secretKey": SECRET, "password": "1234"})

        assert status == 403
        assert body == "Secret key not configured on device."
        assert sink.published == []

    @pytest.mark.parametrize("path,extra", [
        ("/data", {"password": "1234"}),
        ("/command", {"action": "openAccessibilitySettings"}),
    ])
    def test_wrong_secret(self, server, automation, sink, path, extra):
        """Test that a mismatched secret gets 401 on every protected route."""
        pair(server.port)

        status, body = post(server.port, path, {"secretKey": "guess", **extra})

        assert status == 401
        assert body == "Invalid secret key."
        assert automation.calls == 0
        assert sink.published == []

    def test_empty_secret(self, server, store):
        status, body = post(server.port, "/set-secret", {"secretKey": ""})

        assert (status, body) == (400, "Secret key cannot be empty.")
        assert store.get(SECRET_KEY_PREF) is None


class TestMalformedRequests:
    """Requests rejected before routing."""

    @pytest.mark.parametrize("body", [b"", b"{broken", b"[]", b"[" * 100000 + b"]" * 100000])
    def test_invalid_json_is_400_not_auth_error(self, server, body):
        """Test that unparsable bodies are 400 whether or not a secret exists."""
        for _ in range(2):
            status, text = post(server.port, "/data", body=body)
            assert (status, text) == (400, "Invalid JSON format.")
            pair(server.port)

    @pytest.mark.parametrize("method", ["GET", "PUT", "HEAD"])
    def test_non_post_is_405(self, server, method):
        """Test that non-POST methods get 405 regardless of body."""
        status, body = post(server.port, "/data", {"secretKey": SECRET}, method=method)

        assert status == 405
        assert body == "Only POST requests are supported."

    def test_empty_connection_is_405(self, server):
        """Test that a client closing without sending anything gets 405."""
        with socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as s:
            s.shutdown(socket.SHUT_WR)
            raw = read_all(s)

        assert parse_response(raw)[0] == 405

    def test_unknown_path_is_404(self, server):
        status, body = post(server.port, "/nonexistent", {"secretKey": SECRET})

        assert (status, body) == (404, "Endpoint not found.")

    def test_body_too_large(self, store, automation, sink):
        """Test the body size limit."""
        config = ServerConfig(host="127.0.0.1", port=0, max_body_size=32, accept_poll_interval=0.1)
        with CommandServer(config, store=store, automation=automation, sink=sink) as srv:
            status, body = post(srv.port, "/set-secret", {"secretKey": "x" * 100})

        assert (status, body) == (413, "Request body too large.")


class TestCommands:
    """The /command route."""

    def test_open_accessibility_settings(self, server, automation):
        """Test that the controller is called exactly once."""
        pair(server.port)

        status, body = post(
            server.port, "/command", {"secretKey": SECRET, "action": "openAccessibilitySettings"}
        )

        assert (status, body) == (200, "Opened Accessibility Settings.")
        assert automation.calls == 1

    def test_trigger_adb_dialog_tap(self, server, automation):
        pair(server.port)

        status, body = post(server.port, "/command", {"secretKey": SECRET, "action": "triggerAdbDialogTap"})

        assert (status, body) == (200, "ADB dialog tap command acknowledged.")
        assert automation.calls == 0

    def test_unknown_action(self, server, automation):
        """Test that an unknown action is refused and the controller untouched."""
        pair(server.port)

        status, body = post(server.port, "/command", {"secretKey": SECRET, "action": "selfDestruct"})

        assert (status, body) == (400, "Unknown command action.")
        assert automation.calls == 0

    def test_controller_failure_is_500(self, store, sink):
        """Test that a failing controller surfaces as a 500 with its message."""
        failing = RecordingAutomation(error=AutomationError("adb executable not found: adb"))
        config = ServerConfig(host="127.0.0.1", port=0, accept_poll_interval=0.1)

        with CommandServer(config, store=store, automation=failing, sink=sink) as srv:
            pair(srv.port)
            status, body = post(
                srv.port, "/command", {"secretKey": SECRET, "action": "openAccessibilitySettings"}
            )

            # The server keeps serving after a handler failure
            assert post(srv.port, "/nonexistent", {})[0] == 404

        assert status == 500
        assert body == "Server error: adb executable not found: adb"
        assert failing.calls == 1


class TestResponses:
    """Wire format of responses."""

    def test_headers_and_content_length(self, server):
        """Test that Content-Length matches the body bytes and CORS is open."""
        raw = send_raw(server.port, build_request("/set-secret", {"secretKey": SECRET}))
        status, headers, body = parse_response(raw)

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert headers["content-type"] == "text/plain"
        assert headers["access-control-allow-origin"] == "*"
        assert int(headers["content-length"]) == len(body.encode("utf-8"))

    @pytest.mark.parametrize("path,payload", [
        ("/data", {"secretKey": SECRET}),
        ("/nonexistent", {}),
        ("/command", {"secretKey": SECRET, "action": "x"}),
    ])
    def test_content_length_on_errors(self, server, path, payload):
        _, headers, body = parse_response(send_raw(server.port, build_request(path, payload)))

        assert int(headers["content-length"]) == len(body.encode("utf-8"))

    def test_connection_closed_after_response(self, server):
        """Test that exactly one request is served per connection."""
        request = build_request("/nonexistent", {})

        raw = send_raw(server.port, request + request)

        assert raw.count(b"HTTP/1.1 ") == 1


class TestConcurrency:
    """Several clients at once."""

    def test_concurrent_data_posts(self, server, sink):
        """Test that N parallel /data posts all succeed and all reach the sink."""
        pair(server.port)
        count = 20
        results = [None] * count

        def worker(i: int):
            results[i] = post(
                server.port,
                "/data",
                {"secretKey": SECRET, "passwordType": "pin", "password": f"{i:04d}"},
            )

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert all(result == (200, "Password data received.") for result in results)
        assert sorted(pw for _, pw in sink.published) == [f"{i:04d}" for i in range(count)]

    def test_slow_client_does_not_block_others(self, server):
        """Test that a client stuck mid-request leaves the server responsive."""
        with socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as slow:
            slow.sendall(b"POST /data HTTP/1.1\r\nContent-Length: 50\r\n\r\n{")

            start = time.time()
            status, _ = post(server.port, "/nonexistent", {})

            assert status == 404
            assert time.time() - start < 2.0

    def test_read_timeout_is_408(self, store, automation, sink):
        """Test that a client that stops sending gets 408."""
        config = ServerConfig(host="127.0.0.1", port=0, read_timeout=0.2, accept_poll_interval=0.1)

        with CommandServer(config, store=store, automation=automation, sink=sink) as srv:
            with socket.create_connection(("127.0.0.1", srv.port), timeout=5.0) as s:
                s.sendall(b"POST /data HTTP/1.1\r\n")
                raw = read_all(s)

        assert parse_response(raw)[0] == 408
        assert raw.endswith(b"Request timeout.")


class TestLifecycle:
    """start / stop / restart."""

    def test_port_zero_resolves(self, server):
        assert server.port != 0
        assert server.is_running

    def test_stop_is_idempotent(self, config):
        srv = CommandServer(config)
        srv.start()

        srv.stop()
        srv.stop()

        assert not srv.is_running

    def test_stop_before_start(self, config):
        CommandServer(config).stop()

    def test_restart_rebinds(self, config, store):
        """Test that stop() then start() on the same port works right away."""
        srv = CommandServer(config, store=store)
        srv.start()
        port = srv.port
        pair(port)
        srv.stop()

        srv.start(port=port)
        try:
            assert srv.port == port
            status, _ = post(port, "/set-secret", {"secretKey": "again"})
            assert status == 200
        finally:
            srv.stop()

    def test_start_while_running(self, server):
        with pytest.raises(RuntimeError):
            server.start()

    def test_busy_port_raises_bind_error(self, server, config):
        """Test that a second server on the same port fails to start."""
        other = CommandServer(config)

        with pytest.raises(BindError):
            other.start(port=server.port)

        assert not other.is_running

    def test_in_flight_handler_survives_stop(self, config, store):
        """Test that stop() lets an already-accepted request finish."""
        srv = CommandServer(config, store=store)
        srv.start()
        port = srv.port

        with socket.create_connection(("127.0.0.1", port), timeout=5.0) as s:
            s.sendall(b"POST /set-secret HTTP/1.1\r\nContent-Length: 21\r\n\r\n")
            time.sleep(0.3)
            srv.stop()
            s.sendall(b'{"secretKey": "late"}')
            raw = read_all(s)

        assert srv.wait_for_handlers(timeout=5.0)
        assert parse_response(raw)[0] == 200
        assert store.get(SECRET_KEY_PREF) == "late"

    def test_serve_forever_returns_on_stop(self, config):
        srv = CommandServer(config)
        runner = threading.Thread(target=srv.serve_forever, daemon=True)
        runner.start()

        deadline = time.time() + 2.0
        while not srv.is_running and time.time() < deadline:
            time.sleep(0.01)
        srv.stop()

        runner.join(timeout=2.0)
        assert not runner.is_alive()


class TestCollaboratorWiring:
    """Real store and sink implementations behind the server."""

    def test_file_store_and_queue_sink(self, tmp_path, config, automation):
        """Test pairing persisted to disk and credentials fanned out to a queue."""
        path = tmp_path / "prefs.json"
        sink = QueueNotificationSink()
        inbox = sink.subscribe()

        with CommandServer(config, store=FileSecretStore(path), automation=automation, sink=sink) as srv:
            pair(srv.port)

        # A fresh server over the same file is already paired
        with CommandServer(config, store=FileSecretStore(path), automation=automation, sink=sink) as srv:
            status, _ = post(srv.port, "/data", {"secretKey": SECRET, "passwordType": "pin", "password": "0000"})

        assert status == 200
        note = inbox.get(timeout=2.0)
        assert (note.password_type, note.password) == ("pin", "0000")
