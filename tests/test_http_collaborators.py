from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

import httpx
import pytest

from services.errors import SourceUnavailable
from services.latest import HttpLatestRecordSource
from services.notifier import HttpNotifier

LATEST_URL = "https://sensor.example.com/data.json"
NOTIFY_URL = "https://ntfy.example.com/sensor-alerts"


def _source(handler) -> HttpLatestRecordSource:
    return HttpLatestRecordSource(LATEST_URL, transport=httpx.MockTransport(handler))


def test_fetch_latest_parses_snapshot() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == LATEST_URL
        return httpx.Response(
            200,
            json={
                "timestamp": "2024-03-01T12:00:00Z",
                "tags": {"location": "attic"},
                "fields": {"temperature": 18.0, "humidity": None},
            },
        )

    record = _source(handler).fetch_latest()

    assert record.timestamp == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert record.tags == {"location": "attic"}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(404, text="missing"),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"timestamp": "not-a-time"}),
    ],
)
def test_fetch_latest_failures_are_source_unavailable(response: httpx.Response) -> None:
    source = _source(lambda request: response)

    with pytest.raises(SourceUnavailable):
        source.fetch_latest()


def test_fetch_latest_transport_error_is_source_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SourceUnavailable):
        _source(handler).fetch_latest()


def test_fetch_latest_malformed_url_is_source_unavailable() -> None:
    source = HttpLatestRecordSource("http://exa mple.com:abc/x")

    try:
        with pytest.raises(SourceUnavailable):
            source.fetch_latest()
    finally:
        source.close()


def test_notifier_posts_title_and_body() -> None:
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"id": "msg-1"})

    notifier = HttpNotifier(NOTIFY_URL, token="secret", transport=httpx.MockTransport(handler))

    assert notifier.send("Sensor offline", "No readings.") is True
    request = captured[0]
    assert request.method == "POST"
    assert request.headers["Title"] == "Sensor offline"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.content == b"No readings."


def test_notifier_without_token_sends_no_authorization() -> None:
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200)

    HttpNotifier(NOTIFY_URL, transport=httpx.MockTransport(handler)).send("t", "b")

    assert "Authorization" not in captured[0].headers


def test_notifier_reports_rejection(caplog) -> None:
    notifier = HttpNotifier(
        NOTIFY_URL, transport=httpx.MockTransport(lambda request: httpx.Response(429))
    )

    with caplog.at_level(logging.ERROR):
        assert notifier.send("t", "b") is False

    assert any(getattr(record, "status", None) == 429 for record in caplog.records)


def test_notifier_reports_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    notifier = HttpNotifier(NOTIFY_URL, transport=httpx.MockTransport(handler))

    assert notifier.send("t", "b") is False


def test_notifier_malformed_url_reports_failure() -> None:
    notifier = HttpNotifier("http://exa mple.com:abc/topic")

    try:
        assert notifier.send("t", "b") is False
    finally:
        notifier.close()
