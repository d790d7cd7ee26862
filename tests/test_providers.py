import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from notescribe.config import ProcessingSettings
from notescribe.errors import SummarizationError
from notescribe.summary import providers
from notescribe.summary.providers import (
    PROVIDER_CAPABILITIES,
    LocalProvider,
    OnDeviceProvider,
    OpenAICompatibleProvider,
    create_provider,
    summary_from_answer,
)

ANSWER = json.dumps(
    {
        "title": "Standup",
        "category": "Meeting",
        "overview": "Team synced.",
        "keyPoints": ["A"],
        "actionItems": [{"owner": "Bob", "task": "Fix bug"}],
        "tags": ["standup"],
    }
)


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def provider_with_client(provider_id, api_key="sk-test", **kwargs):
    provider = OpenAICompatibleProvider(PROVIDER_CAPABILITIES[provider_id], api_key=api_key, **kwargs)
    provider.client = MagicMock()
    provider._client_loaded = True
    return provider


def test_provider_table():
    ollama = PROVIDER_CAPABILITIES["ollama"]

    assert not ollama.requires_key
    assert not ollama.supports_json_mode
    assert ollama.receive_timeout == 600
    assert not PROVIDER_CAPABILITIES["groq"].supports_json_mode
    assert PROVIDER_CAPABILITIES["openai"].receive_timeout == 300
    assert PROVIDER_CAPABILITIES["openai"].supports_json_mode


def test_create_provider_selects_implementation():
    settings = ProcessingSettings(
        summary_model="gpt-4o",
        api_keys={"openai": "sk-1"},
        base_urls={"ollama": "http://gpu-box:11434/v1/"},
    )

    openai_provider = create_provider("openai", settings)
    ollama_provider = create_provider("ollama", settings)

    assert isinstance(openai_provider, OpenAICompatibleProvider)
    assert openai_provider.api_key == "sk-1"
    assert openai_provider.model == "gpt-4o"
    assert openai_provider.base_url == "https://api.openai.com/v1"
    assert ollama_provider.base_url == "http://gpu-box:11434/v1"
    assert isinstance(create_provider("local", settings), LocalProvider)
    assert isinstance(create_provider("gemini_nano", settings), OnDeviceProvider)

    with pytest.raises(ValueError):
        create_provider("nope", settings)


def test_model_defaults_to_first_supported():
    provider = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["groq"], api_key="k")
    assert provider.model == "llama-3.3-70b-versatile"


def test_summarize_requests_json_mode_when_supported():
    provider = provider_with_client("openai")
    provider.client.chat.completions.create.return_value = chat_response(ANSWER)

    result = provider.summarize("Bob: I will fix the bug.", speakers=["Speaker 1"])

    kwargs = provider.client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0.3
    assert kwargs["messages"][0]["role"] == "system"
    assert "Speaker 1" in kwargs["messages"][0]["content"]
    assert kwargs["messages"][1]["content"].endswith("Bob: I will fix the bug.")
    assert result.error is None
    assert result.title == "Standup"
    assert result.category == "Meeting"
    assert result.tags == ["standup"]
    assert "- [ ] [Bob] Fix bug" in result.summary_markdown
    assert result.provider_id == "openai"


@pytest.mark.parametrize("provider_id", ["groq", "ollama"])
def test_summarize_omits_json_mode(provider_id):
    provider = provider_with_client(provider_id)
    provider.client.chat.completions.create.return_value = chat_response(ANSWER)

    provider.summarize("hello")

    assert "response_format" not in provider.client.chat.completions.create.call_args.kwargs


def test_summarize_without_key_does_not_call_client():
    provider = provider_with_client("openai", api_key="")

    result = provider.summarize("hello")

    assert result.error == "No API key configured for openai"
    provider.client.chat.completions.create.assert_not_called()


def test_keyless_provider_is_configured():
    provider = provider_with_client("ollama", api_key="")
    provider.client.chat.completions.create.return_value = chat_response(ANSWER)

    assert provider.summarize("hello").error is None


def test_summarize_client_failure_is_an_error_result():
    provider = provider_with_client("openai")
    provider.client.chat.completions.create.side_effect = TimeoutError("read timed out")

    result = provider.summarize("hello")

    assert result.error == "read timed out"
    assert result.summary_markdown is None


def test_short_answer_is_an_error_result():
    result = summary_from_answer("  {}  ", "groq")

    assert result.error.startswith("Empty or too short response")
    assert summary_from_answer(None, "groq").error


def test_prose_answer_still_renders():
    result = summary_from_answer("The team agreed to ship on Friday. Bob owns the fix.", "gemini")

    assert result.error is None
    assert "## Overview\nThe team agreed to ship on Friday. Bob owns the fix." in result.summary_markdown


def test_transcription_model_is_validated():
    groq = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["groq"], api_key="k", transcription_model="base")
    openai_provider = OpenAICompatibleProvider(
        PROVIDER_CAPABILITIES["openai"], api_key="k", transcription_model="whisper-1"
    )

    assert groq.resolve_transcription_model() == "whisper-large-v3-turbo"
    assert openai_provider.resolve_transcription_model() == "whisper-1"


def test_transcribe_uploads_audio(tmp_path):
    audio = tmp_path / "clip.wav"
    audio.write_bytes(b"RIFF")
    provider = provider_with_client("groq", transcription_model="whisper-large-v3", language="de")
    provider.client.audio.transcriptions.create.return_value = SimpleNamespace(text="Hallo zusammen.", language="german")

    result = provider.transcribe(str(audio), duration_seconds=3.0)

    kwargs = provider.client.audio.transcriptions.create.call_args.kwargs
    assert kwargs["model"] == "whisper-large-v3"
    assert kwargs["response_format"] == "verbose_json"
    assert kwargs["language"] == "de"
    assert result.transcript == "Hallo zusammen."
    assert result.language == "german"
    assert result.error is None


def test_transcribe_missing_file_is_an_error_result(tmp_path):
    provider = provider_with_client("openai")

    result = provider.transcribe(str(tmp_path / "missing.wav"))

    assert result.transcript is None
    assert result.error


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload or {}

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code}")


def test_ollama_connection_uses_tags_endpoint(monkeypatch):
    calls = []

    def fake_get(url, **kwargs):
        calls.append((url, kwargs))
        return FakeResponse(payload={"models": [{"name": "llama3.2"}, {"name": "mistral"}]})

    monkeypatch.setattr(providers.requests, "get", fake_get)

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["ollama"]).test_connection()

    assert result.success
    assert result.message == "Ollama connected! Found 2 models."
    assert calls[0][0] == "http://localhost:11434/api/tags"
    assert calls[0][1]["timeout"] == (30.0, 30.0)


def test_ollama_connection_failure(monkeypatch):
    def fake_get(url, **kwargs):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(providers.requests, "get", fake_get)

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["ollama"]).test_connection()

    assert not result.success
    assert result.message == "Ollama connection failed. Make sure Ollama is running."


def test_cloud_connection_lists_models(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers))
        return FakeResponse(payload={"data": [{"id": "gpt-4o"}]})

    monkeypatch.setattr(providers.requests, "get", fake_get)

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["openai"], api_key="sk-1").test_connection()

    assert result.success
    assert result.message == "Connection successful! Found 1 models."
    assert calls[0][0] == "https://api.openai.com/v1/models"
    assert calls[0][1]["Authorization"] == "Bearer sk-1"


def test_cloud_connection_http_error(monkeypatch):
    monkeypatch.setattr(providers.requests, "get", lambda url, **kwargs: FakeResponse(status_code=401))

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["groq"], api_key="bad").test_connection()

    assert not result.success
    assert result.message == "Connection failed (HTTP 401)"


def test_custom_provider_without_url():
    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["custom"], api_key="k").test_connection()

    assert not result.success
    assert result.message == "No base URL configured for custom"


def test_local_provider_uses_transcriber_and_extractive_summary():
    transcriber = MagicMock()
    transcriber.model_name = "base"
    transcriber.transcribe_marked.return_value = ("[00:00.000 --> 00:01.000] Hello.", "en")
    provider = LocalProvider(PROVIDER_CAPABILITIES["local"], transcriber=transcriber, language="en")

    result = provider.transcribe("clip.wav")
    summary = provider.summarize("We will ship the release on Friday after the final review.")

    transcriber.transcribe_marked.assert_called_once_with("clip.wav", language="en")
    assert result.transcript == "[00:00.000 --> 00:01.000] Hello."
    assert result.language == "en"
    assert summary.provider_id == "local"
    assert "## Action Items\n- [ ] We will ship the release on Friday after the final review" in summary.summary_markdown
    assert provider.test_connection().success


def test_local_provider_without_transcriber():
    provider = LocalProvider(PROVIDER_CAPABILITIES["local"])

    assert provider.transcribe("clip.wav").error == "Local transcription model is not available"


def test_on_device_provider_is_unavailable():
    provider = OnDeviceProvider(PROVIDER_CAPABILITIES["gemini_nano"])

    assert not provider.test_connection().success
    assert provider.summarize("hello").error == "On-device model is not available on this platform"
    assert provider.transcribe("clip.wav").error


class HtmlResponse(FakeResponse):
    def json(self):
        raise requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)


def test_cloud_connection_non_json_body(monkeypatch):
    monkeypatch.setattr(providers.requests, "get", lambda url, **kwargs: HtmlResponse())

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["openai"], api_key="sk-1").test_connection()

    assert not result.success
    assert result.message.startswith("Unexpected response from https://api.openai.com/v1/models")


def test_cloud_connection_list_body(monkeypatch):
    monkeypatch.setattr(providers.requests, "get", lambda url, **kwargs: FakeResponse(payload=[{"id": "x"}]))

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["groq"], api_key="gsk").test_connection()

    assert not result.success
    assert "expected a JSON object, got list" in result.message


def test_ollama_connection_non_json_body(monkeypatch):
    monkeypatch.setattr(providers.requests, "get", lambda url, **kwargs: HtmlResponse())

    result = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["ollama"]).test_connection()

    assert not result.success


def test_ollama_base_strips_only_trailing_v1(monkeypatch):
    calls = []

    def fake_get(url, **kwargs):
        calls.append(url)
        return FakeResponse(payload={"models": []})

    monkeypatch.setattr(providers.requests, "get", fake_get)

    provider = OpenAICompatibleProvider(PROVIDER_CAPABILITIES["ollama"], base_url="http://gpu/v1proxy/ollama/v1")
    result = provider.test_connection()

    assert result.success
    assert calls == ["http://gpu/v1proxy/ollama/api/tags"]


def test_client_failure_is_wrapped_in_summarization_error():
    provider = provider_with_client("groq", api_key="gsk")
    cause = ConnectionError("reset by peer")
    provider.client.chat.completions.create.side_effect = cause

    with pytest.raises(SummarizationError) as excinfo:
        provider._complete({"model": provider.model, "messages": []})

    assert excinfo.value.__cause__ is cause
    assert str(excinfo.value) == "reset by peer"
