"""Tests for external provider clients with a mocked HTTP client."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from conftest import error_response, json_response

from onevoice.config import ServiceConfig
from onevoice.exceptions import ConfigurationError, UpstreamProviderError
from onevoice.providers import (
    ElevenLabsSpeech,
    HttpResponse,
    OpenAISpeech,
    Transcriber,
    Translator,
    audio_extension,
    build_providers,
)


def completion(text: str) -> HttpResponse:
    return json_response({"choices": [{"message": {"content": text}}]})


class TestTranslator:
    @pytest.mark.asyncio
    async def test_translate(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = completion("  Hola a todos \n")
        translator = Translator(http_client, api_key="sk-test")

        result = await translator.translate("Hello everyone", "Spanish")

        assert result == "Hola a todos"
        method, url = http_client.request.call_args.args
        kwargs = http_client.request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"] == {"Authorization": "Bearer sk-test"}
        body = kwargs["json"]
        assert body["model"] == "gpt-4o-mini"
        assert body["temperature"] == 0.2
        assert "Translate into Spanish" in body["messages"][0]["content"]
        assert body["messages"][1] == {"role": "user", "content": "Hello everyone"}

    @pytest.mark.asyncio
    async def test_upstream_failure(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = error_response(429, "rate limited")
        translator = Translator(http_client, api_key="sk-test")

        with pytest.raises(UpstreamProviderError) as exc_info:
            await translator.translate("Hello", "es")

        assert exc_info.value.status_code == 429
        assert exc_info.value.to_dict() == {
            "provider": "openai",
            "upstream_status": 429,
            "upstream_body": "rate limited",
        }

    @pytest.mark.asyncio
    async def test_missing_key(self, http_client: AsyncMock) -> None:
        translator = Translator(http_client, api_key=None)

        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            await translator.translate("Hello", "es")
        http_client.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_translate_all_keeps_successful_targets(self, http_client: AsyncMock) -> None:
        async def respond(method, url, **kwargs):
            target = kwargs["json"]["messages"][0]["content"]
            if "Translate into vi" in target:
                return error_response(500)
            return completion("Hola")

        http_client.request.side_effect = respond
        translator = Translator(http_client, api_key="sk-test")

        result = await translator.translate_all("Hello", ["es", "vi"])

        assert result == {"es": "Hola", "vi": ""}


class TestTranscriber:
    @pytest.mark.asyncio
    async def test_transcribe(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = json_response({"text": " Good morning "})
        transcriber = Transcriber(http_client, api_key="sk-test")

        text = await transcriber.transcribe(b"audio", "audio/ogg;codecs=opus", "en-US")

        assert text == "Good morning"
        kwargs = http_client.request.call_args.kwargs
        assert kwargs["data"] == {"model": "gpt-4o-mini-transcribe", "language": "en"}
        assert kwargs["files"] == {"file": ("clip.ogg", b"audio", "audio/ogg;codecs=opus")}

    @pytest.mark.asyncio
    async def test_auto_language_is_omitted(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = json_response({"text": "hi"})
        transcriber = Transcriber(http_client, api_key="sk-test")

        await transcriber.transcribe(b"audio", "audio/webm", "AUTO")

        assert "language" not in http_client.request.call_args.kwargs["data"]

    @pytest.mark.asyncio
    async def test_falls_back_on_400(self, http_client: AsyncMock) -> None:
        http_client.request.side_effect = [
            error_response(400, "Invalid file format"),
            json_response({"text": "recovered"}),
        ]
        transcriber = Transcriber(http_client, api_key="sk-test")

        text = await transcriber.transcribe(b"audio", "audio/webm")

        assert text == "recovered"
        models = [c.kwargs["data"]["model"] for c in http_client.request.call_args_list]
        assert models == ["gpt-4o-mini-transcribe", "whisper-1"]

    @pytest.mark.asyncio
    async def test_no_fallback_on_other_errors(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = error_response(503)
        transcriber = Transcriber(http_client, api_key="sk-test")

        with pytest.raises(UpstreamProviderError) as exc_info:
            await transcriber.transcribe(b"audio", "audio/webm")

        assert exc_info.value.status_code == 503
        assert http_client.request.call_count == 1

    @pytest.mark.parametrize(
        ("content_type", "ext"),
        [
            ("audio/wav", "wav"),
            ("audio/mpeg", "mp3"),
            ("audio/ogg;codecs=opus", "ogg"),
            ("audio/m4a", "m4a"),
            ("audio/webm;codecs=opus", "webm"),
            (None, "webm"),
        ],
    )
    def test_audio_extension(self, content_type: str | None, ext: str) -> None:
        assert audio_extension(content_type) == ext


class TestSpeech:
    @pytest.mark.asyncio
    async def test_openai_speech(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = HttpResponse(status_code=200, content=b"ID3mp3")
        speech = OpenAISpeech(http_client, api_key="sk-test")

        audio = await speech.synthesize("Hello", voice="verse")

        assert audio == b"ID3mp3"
        kwargs = http_client.request.call_args.kwargs
        assert kwargs["json"] == {
            "model": "tts-1",
            "input": "Hello",
            "voice": "verse",
            "response_format": "mp3",
        }

    @pytest.mark.asyncio
    async def test_elevenlabs_tts(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = HttpResponse(status_code=200, content=b"mp3")
        speech = ElevenLabsSpeech(http_client, api_key="el-key")

        audio = await speech.synthesize("Hola", "voice123")

        assert audio == b"mp3"
        method, url = http_client.request.call_args.args
        kwargs = http_client.request.call_args.kwargs
        assert url == "https://api.elevenlabs.io/v1/text-to-speech/voice123"
        assert kwargs["headers"] == {"xi-api-key": "el-key", "Accept": "audio/mpeg"}
        assert kwargs["json"]["model_id"] == "eleven_flash_v2_5"

    @pytest.mark.asyncio
    async def test_elevenlabs_voices(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = json_response(
            {
                "voices": [
                    {"voice_id": "v1", "name": "Rachel", "labels": {"accent": "american"}},
                    {"voice_id": "v2", "name": "Adam", "category": "premade"},
                ]
            }
        )
        speech = ElevenLabsSpeech(http_client, api_key="el-key")

        voices = await speech.list_voices()

        assert voices == [
            {"voice_id": "v1", "name": "Rachel", "labels": {"accent": "american"}},
            {"voice_id": "v2", "name": "Adam", "labels": {}},
        ]

    @pytest.mark.asyncio
    async def test_elevenlabs_failure(self, http_client: AsyncMock) -> None:
        http_client.request.return_value = error_response(401, "bad key")
        speech = ElevenLabsSpeech(http_client, api_key="el-key")

        with pytest.raises(UpstreamProviderError) as exc_info:
            await speech.list_voices()
        assert exc_info.value.provider == "elevenlabs"

    @pytest.mark.asyncio
    async def test_elevenlabs_missing_key(self, http_client: AsyncMock) -> None:
        with pytest.raises(ConfigurationError, match="ELEVENLABS_API_KEY"):
            await ElevenLabsSpeech(http_client, api_key=None).synthesize("x", "v")


class TestBuildProviders:
    @pytest.mark.asyncio
    async def test_uses_configuration(self, http_client: AsyncMock) -> None:
        config = ServiceConfig(
            openai_api_key="sk-x",
            openai_base_url="http://proxy.local/v1/",
            translation_model="gpt-test",
            fallback_transcription_model="",
        )

        providers = build_providers(config, http_client)
        http_client.request.return_value = completion("ok")
        await providers.translator.translate("hi", "es")

        assert http_client.request.call_args.args[1] == "http://proxy.local/v1/chat/completions"
        assert http_client.request.call_args.kwargs["json"]["model"] == "gpt-test"
        assert providers.transcriber.fallback_model is None
        await providers.close()
        http_client.close.assert_awaited_once()
