"""
Unit tests for the middleware pipeline and access logging.
"""

import json
import logging

import pytest

from adbenabler.http.request import Payload, Request
from adbenabler.http.response import ok
from adbenabler.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline, RequestLog


def make_request(path: str = "/data") -> Request:
    return Request(
        method="POST",
        path=path,
        payload=Payload({"secretKey": "topsecret", "password": "hunter2"}),
        client_address=("192.168.1.57", 51000),
    )


class Recorder(Middleware):
    """Appends its tag to a shared list on the way in and out."""

    def __init__(self, tag: str, events: list):
        self.tag = tag
        self.events = events

    def __call__(self, request, next):
        self.events.append(f"{self.tag}:in")
        response = next(request)
        self.events.append(f"{self.tag}:out")
        return response


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_empty_pipeline_is_handler(self):
        """Test that wrapping with no middleware calls the handler directly."""
        handler = lambda request: ok("done")

        assert MiddlewarePipeline().wrap(handler)(make_request()).body == "done"

    def test_first_added_is_outermost(self):
        """Test the execution order of the chain."""
        events = []
        pipeline = MiddlewarePipeline()
        pipeline.add(Recorder("a", events)).add(Recorder("b", events))

        def handler(request):
            events.append("handler")
            return ok("done")

        pipeline.wrap(handler)(make_request())

        assert events == ["a:in", "b:in", "handler", "b:out", "a:out"]
        assert len(pipeline) == 2
        assert [mw.tag for mw in pipeline] == ["a", "b"]

    def test_name(self):
        assert LoggingMiddleware().name == "LoggingMiddleware"


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_text_access_line(self, caplog):
        """Test the Apache-style access line."""
        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(lambda r: ok("Password data received."))

        with caplog.at_level(logging.INFO, logger="adbenabler.middleware.logging"):
            handler(make_request())

        line = caplog.records[-1].getMessage()
        assert line.startswith("192.168.1.57 - - [")
        assert '"POST /data" 200 23 ' in line

    def test_json_access_line(self, caplog):
        handler = MiddlewarePipeline().add(LoggingMiddleware(log_format="json")).wrap(lambda r: ok("ok"))

        with caplog.at_level(logging.INFO, logger="adbenabler.middleware.logging"):
            handler(make_request("/command"))

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["path"] == "/command"
        assert entry["status_code"] == 200
        assert entry["content_length"] == 2
        assert entry["client_ip"] == "192.168.1.57"

    def test_never_logs_body(self, caplog):
        """Test that secrets in the payload stay out of the access log."""
        handler = MiddlewarePipeline().add(LoggingMiddleware(log_format="json")).wrap(lambda r: ok("ok"))

        with caplog.at_level(logging.DEBUG):
            handler(make_request())

        assert "topsecret" not in caplog.text
        assert "hunter2" not in caplog.text

    def test_handler_exception_logged_and_reraised(self, caplog):
        """Test that failures are logged and still propagate."""
        def failing(request):
            raise RuntimeError("adb exploded")

        handler = MiddlewarePipeline().add(LoggingMiddleware()).wrap(failing)

        with caplog.at_level(logging.ERROR):
            with pytest.raises(RuntimeError):
                handler(make_request())

        assert "Request failed: POST /data" in caplog.text
        assert "RuntimeError: adb exploded" in caplog.text


class TestRequestLog:
    def test_to_text(self):
        entry = RequestLog(
            method="POST",
            path="/set-secret",
            client_ip="10.0.0.2",
            status_code=400,
            content_length=27,
            duration_ms=1.234,
            timestamp="19/Oct/2026:14:03:11 +0000",
        )

        assert entry.to_text() == (
            '10.0.0.2 - - [19/Oct/2026:14:03:11 +0000] "POST /set-secret" 400 27 1.23ms'
        )
        assert entry.to_dict()["duration_ms"] == 1.23
