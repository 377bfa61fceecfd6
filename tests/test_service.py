"""Tests for the FastAPI service endpoints."""

from __future__ import annotations

import base64
import logging
from unittest.mock import AsyncMock

import pytest
from conftest import TickingClock, error_response, json_response
from fastapi.testclient import TestClient

from onevoice.config import ServiceConfig
from onevoice.events import EventType, parse_sse
from onevoice.providers import HttpResponse
from onevoice.service import create_app
from onevoice.store import LogKind, MemorySessionStore

AUDIO = b"\x1a\x45\xdf\xa3" * 64


def completion(text: str) -> HttpResponse:
    return json_response({"choices": [{"message": {"content": text}}]})


# =============================================================================
# System
# =============================================================================


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["healthy"] is True
        assert data["checks"]["store"] == {"status": "ok", "backend": "memory"}
        assert data["checks"]["providers"]["status"] == "ok"

    def test_liveness(self, client: TestClient) -> None:
        assert client.get("/health/live").json()["status"] == "alive"

    def test_store_unreachable(self, client: TestClient, store: MemorySessionStore) -> None:
        store.ping = AsyncMock(return_value=False)

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["checks"]["store"]["status"] == "error"

    def test_request_id_and_security_headers(self, client: TestClient) -> None:
        response = client.get("/health/live", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_request_log_names_session(
        self, client: TestClient, caplog: pytest.LogCaptureFixture
    ) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        with caplog.at_level(logging.INFO, logger="onevoice.service_middleware"):
            caplog.clear()
            client.get("/api/session", params={"code": "abcd"})

        (record,) = [r for r in caplog.records if r.name == "onevoice.service_middleware"]
        assert record.session_code == "ABCD"
        assert record.status_code == 200
        assert "session=ABCD -> 200" in record.getMessage()


# =============================================================================
# Sessions
# =============================================================================


class TestSessionEndpoints:
    def test_start_with_generated_code(self, client: TestClient) -> None:
        response = client.post("/api/session")

        assert response.status_code == 201
        data = response.json()
        assert len(data["code"]) == 4
        assert data["inputLang"] == "AUTO"
        assert data["expiresAt"] > data["createdAt"]

    def test_start_with_json_body(self, client: TestClient, store: MemorySessionStore) -> None:
        response = client.post("/api/session", json={"code": "test", "inputLang": "en-US"})

        assert response.status_code == 201
        assert response.json()["code"] == "TEST"
        assert response.json()["inputLang"] == "en-US"

    def test_start_with_query_params(self, client: TestClient) -> None:
        response = client.post("/api/session", params={"code": "WXYZ", "inputLang": "vi"})

        assert response.status_code == 201
        assert response.json()["code"] == "WXYZ"
        assert response.json()["inputLang"] == "vi"

    def test_start_conflict_and_replace(self, client: TestClient) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        conflict = client.post("/api/session", json={"code": "ABCD"})
        replaced = client.post("/api/session", json={"code": "ABCD", "replace": True})

        assert conflict.status_code == 409
        assert conflict.json()["error"] == "SESSION_CONFLICT"
        assert replaced.status_code == 201

    def test_start_invalid_code(self, client: TestClient) -> None:
        response = client.post("/api/session", json={"code": "O0O0"})

        assert response.status_code == 400
        assert response.json()["ok"] is False
        assert response.json()["error"] == "INVALID_CODE"

    def test_end_session(self, client: TestClient, store: MemorySessionStore) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        response = client.delete("/api/session", params={"code": "abcd"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert client.delete("/api/session", params={"code": "ABCD"}).status_code == 404

    def test_end_session_missing_code(self, client: TestClient) -> None:
        response = client.delete("/api/session")

        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_FIELDS"

    def test_get_session(self, client: TestClient) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        response = client.get("/api/session", params={"code": "ABCD"})

        assert response.status_code == 200
        assert response.json()["code"] == "ABCD"
        assert response.json()["active"] is True
        assert client.get("/api/session", params={"code": "ZZZZ"}).status_code == 404

    def test_input_language(self, client: TestClient) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        put = client.put("/api/session/lang", params={"code": "ABCD"}, json={"inputLang": "es-MX"})
        get = client.get("/api/session/lang", params={"code": "ABCD"})

        assert put.json() == {"ok": True, "code": "ABCD", "inputLang": "es-MX"}
        assert get.json() == {"code": "ABCD", "inputLang": "es-MX"}
        assert client.get("/api/session/lang", params={"code": "ZZZZ"}).status_code == 404

    def test_non_string_input_language(self, client: TestClient) -> None:
        start = client.post("/api/session", json={"code": "ABCD", "inputLang": 42})
        client.post("/api/session", json={"code": "WXYZ"})
        put = client.put("/api/session/lang", params={"code": "WXYZ"}, json={"inputLang": ["es"]})

        assert start.status_code == 400
        assert start.json()["error"] == "INVALID_INPUT"
        assert put.status_code == 400
        assert client.get("/api/session/lang", params={"code": "WXYZ"}).json()["inputLang"] == "AUTO"

    def test_non_string_code_in_body(self, client: TestClient) -> None:
        response = client.post("/api/session", json={"code": 1234})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_CODE"


# =============================================================================
# Ingest
# =============================================================================


class TestIngestEndpoints:
    def test_ingest_line(self, client: TestClient, store: MemorySessionStore) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        response = client.post("/api/ingest", json={"code": "ABCD", "text": "Welcome"})

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["kind"] == "events"

    def test_ingest_chunk(self, client: TestClient) -> None:
        client.post("/api/session", json={"code": "ABCD"})
        data = base64.b64encode(AUDIO).decode("ascii")

        response = client.post(
            "/api/ingest", json={"code": "ABCD", "data": data, "contentType": "audio/ogg"}
        )

        assert response.json()["kind"] == "audio"

    def test_missing_fields(self, client: TestClient, store: MemorySessionStore) -> None:
        for body in ({"code": "", "text": "hello"}, {"code": "ABCD"}, {"text": "hello"}, None):
            response = client.post("/api/ingest", json=body)

            assert response.status_code == 400
            assert response.json()["ok"] is False
            assert response.json()["error"] == "MISSING_FIELDS"

    @pytest.mark.parametrize(
        ("body", "error"),
        [
            ({"code": "ABCD", "text": 123}, "INVALID_INPUT"),
            ({"code": 1234, "text": "hi"}, "INVALID_CODE"),
            ({"code": "ABCD", "data": 123}, "INVALID_INPUT"),
            ({"code": "ABCD", "data": "AAE=", "contentType": 5}, "INVALID_INPUT"),
        ],
    )
    def test_non_string_fields(
        self, client: TestClient, store: MemorySessionStore, body: dict, error: str
    ) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        response = client.post("/api/ingest", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == error


    def test_absent_session(self, client: TestClient, store: MemorySessionStore) -> None:
        response = client.post("/api/ingest", json={"code": "ZZZZ", "text": "hello"})

        assert response.status_code == 404
        assert response.json()["error"] == "SESSION_NOT_FOUND"


class TestSpeechRelayEndpoint:
    def test_relay(self, client: TestClient, http_client: AsyncMock) -> None:
        client.post("/api/session", json={"code": "ABCD", "inputLang": "en-US"})
        http_client.request.side_effect = [
            json_response({"text": "Good morning"}),
            completion("Buenos días"),
        ]

        response = client.post(
            "/api/ingest/audio",
            params={"code": "ABCD", "langs": "es"},
            content=AUDIO,
            headers={"Content-Type": "audio/webm"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "ok": True,
            "text": "Good morning",
            "tx": {"es": "Buenos días"},
        }

    def test_tiny_segment(self, client: TestClient, http_client: AsyncMock) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        response = client.post("/api/ingest/audio", params={"code": "ABCD"}, content=b"x")

        assert response.json() == {"ok": True, "skipped": "tiny"}
        http_client.request.assert_not_called()

    def test_transcription_failure(
        self, client: TestClient, http_client: AsyncMock, store: MemorySessionStore
    ) -> None:
        client.post("/api/session", json={"code": "ABCD"})
        http_client.request.return_value = error_response(500, "model overloaded")

        response = client.post(
            "/api/ingest/audio", params={"code": "ABCD", "langs": "es,vi"}, content=AUDIO
        )

        assert response.status_code == 502
        data = response.json()
        assert data["error"] == "UPSTREAM_PROVIDER_FAILURE"
        assert data["details"]["upstream_status"] == 500
        assert data["details"]["upstream_body"] == "model overloaded"


# =============================================================================
# Streaming
# =============================================================================


class TestStreamEndpoint:
    def test_missing_code(self, client: TestClient) -> None:
        response = client.get("/api/stream")

        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_FIELDS"

    def test_absent_session(self, client: TestClient) -> None:
        response = client.get("/api/stream", params={"code": "ZZZZ"})

        assert response.status_code == 404

    def test_unknown_kind(self, client: TestClient) -> None:
        client.post("/api/session", json={"code": "ABCD"})

        response = client.get("/api/stream", params={"code": "ABCD", "kind": "video"})

        assert response.status_code == 400

    def test_replay_pings_and_end(self, config: ServiceConfig, http_client: AsyncMock) -> None:
        # Every clock read advances one second, so the 60s session expires
        # after a few dozen store calls and the stream ends on its own.
        store = MemorySessionStore(ttl_sec=60, clock=TickingClock(step=1000))
        app = create_app(config=config, store=store, http_client=http_client)

        with TestClient(app) as client:
            client.post("/api/session", json={"code": "TEST"})
            client.post("/api/ingest", json={"code": "TEST", "text": "line1"})
            client.post("/api/ingest", json={"code": "TEST", "text": "line2"})

            with client.stream("GET", "/api/stream", params={"code": "test"}) as response:
                assert response.status_code == 200
                assert response.headers["content-type"].startswith("text/event-stream")
                assert response.headers["cache-control"].startswith("no-cache")
                body = "".join(response.iter_text())

        events = parse_sse(body)
        lines = [e.data["text"] for e in events if e.type == EventType.LINE]
        assert lines == ["line1", "line2"]
        assert events[0].type == EventType.LINE
        assert EventType.PING in {e.type for e in events}
        assert events[-1].type == EventType.END
        assert [e.type for e in events].count(EventType.END) == 1

    def test_audio_stream(self, config: ServiceConfig, http_client: AsyncMock) -> None:
        store = MemorySessionStore(ttl_sec=30, clock=TickingClock(step=1000))
        app = create_app(config=config, store=store, http_client=http_client)
        data = base64.b64encode(AUDIO).decode("ascii")

        with TestClient(app) as client:
            client.post("/api/session", json={"code": "ABCD"})
            client.post("/api/ingest", json={"code": "ABCD", "text": "not audio"})
            client.post(
                "/api/ingest", json={"code": "ABCD", "data": data, "contentType": "audio/webm"}
            )
            with client.stream(
                "GET", "/api/stream", params={"code": "ABCD", "kind": LogKind.AUDIO.value}
            ) as response:
                body = "".join(response.iter_text())

        lines = [e for e in parse_sse(body) if e.type == EventType.LINE]
        assert [e.data["data"] for e in lines] == [data]


# =============================================================================
# Providers
# =============================================================================


class TestProviderEndpoints:
    def test_translate(self, client: TestClient, http_client: AsyncMock) -> None:
        http_client.request.return_value = completion("Hola")

        response = client.post("/api/translate", json={"text": "Hello", "targetLang": "es"})

        assert response.json() == {"ok": True, "text": "Hola"}

    def test_translate_missing_fields(self, client: TestClient) -> None:
        response = client.post("/api/translate", json={"text": "Hello"})

        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_FIELDS"

    def test_translate_upstream_failure(self, client: TestClient, http_client: AsyncMock) -> None:
        http_client.request.return_value = error_response(429, "slow down")

        response = client.post("/api/translate", json={"text": "Hello", "targetLang": "es"})

        assert response.status_code == 502
        assert response.json()["details"]["provider"] == "openai"

    def test_tts(self, client: TestClient, http_client: AsyncMock) -> None:
        http_client.request.return_value = HttpResponse(status_code=200, content=b"ID3audio")

        response = client.post("/api/tts", json={"text": "Hola", "voiceId": "v1"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content == b"ID3audio"

    def test_speak(self, client: TestClient, http_client: AsyncMock) -> None:
        http_client.request.return_value = HttpResponse(status_code=200, content=b"ID3speech")

        response = client.post("/api/speak", json={"text": "Hello"})

        assert response.content == b"ID3speech"
        assert http_client.request.call_args.kwargs["json"]["voice"] == "alloy"

    def test_voices(self, client: TestClient, http_client: AsyncMock) -> None:
        http_client.request.return_value = json_response(
            {"voices": [{"voice_id": "v1", "name": "Rachel", "labels": {}}]}
        )

        response = client.get("/api/voices")

        assert response.json() == {"voices": [{"voice_id": "v1", "name": "Rachel", "labels": {}}]}

    def test_missing_provider_key(self, store: MemorySessionStore, http_client: AsyncMock) -> None:
        app = create_app(config=ServiceConfig(), store=store, http_client=http_client)

        with TestClient(app) as client:
            response = client.post("/api/translate", json={"text": "Hello", "targetLang": "es"})

        assert response.status_code == 500
        assert "OPENAI_API_KEY" in response.json()["detail"]
