"""
Capability providers for transcription and summarization.

Every backend implements the same CapabilityProvider interface and is chosen
by id from PROVIDER_CAPABILITIES:

- OpenAICompatibleProvider: OpenAI, Gemini, Groq, OpenRouter, Ollama and any
  custom OpenAI-compatible endpoint, all through the openai SDK with a
  per-provider base URL
- LocalProvider: on-device Whisper transcription and extractive summaries
- OnDeviceProvider: platform model integration, currently unavailable

Network calls use a 30 s connect timeout and a receive timeout of 5 minutes
(10 minutes for Ollama). The SDK's retries are disabled; a timeout is a
terminal failure for that attempt and the orchestrator falls back.

Important: The openai client is created lazily on first use, so building a
provider never touches the network.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import requests

from ..config import ProcessingSettings
from ..errors import SummarizationError
from .extractive import ExtractiveSummarizer
from .models import ConnectionResult, SummaryResult, TranscriptionResult
from .parser import parse_structured_response, render_markdown
from .prompt import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 30.0
RECEIVE_TIMEOUT = 5 * 60.0
LOCAL_RECEIVE_TIMEOUT = 10 * 60.0

# Answers shorter than this are treated as empty
MIN_SUMMARY_CHARS = 20

SUMMARY_TEMPERATURE = 0.3

# The SDK refuses an empty key; keyless local servers ignore it
PLACEHOLDER_API_KEY = "ollama"

EXTRACTIVE_PROVIDER_ID = "extractive"


@dataclass(frozen=True)
class ProviderCapability:
    """Static description of one backend."""

    id: str
    base_url: str
    requires_key: bool
    supported_models: Tuple[str, ...] = ()
    transcription_models: Tuple[str, ...] = ()
    supports_json_mode: bool = True
    receive_timeout: float = RECEIVE_TIMEOUT


PROVIDER_CAPABILITIES: Dict[str, ProviderCapability] = {
    "openai": ProviderCapability(
        id="openai",
        base_url="https://api.openai.com/v1",
        requires_key=True,
        supported_models=("gpt-4o-mini", "gpt-4o", "gpt-3.5-turbo"),
        transcription_models=("whisper-1",),
    ),
    "gemini": ProviderCapability(
        id="gemini",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai",
        requires_key=True,
        supported_models=("gemini-2.0-flash-exp", "gemini-1.5-flash", "gemini-1.5-pro"),
    ),
    "groq": ProviderCapability(
        id="groq",
        base_url="https://api.groq.com/openai/v1",
        requires_key=True,
        supported_models=("llama-3.3-70b-versatile", "meta-llama/llama-4-scout-17b-16e-instruct", "qwen/qwen3-32b"),
        transcription_models=("whisper-large-v3-turbo", "whisper-large-v3"),
        supports_json_mode=False,
    ),
    "openrouter": ProviderCapability(
        id="openrouter",
        base_url="https://openrouter.ai/api/v1",
        requires_key=True,
        supported_models=("meta-llama/llama-3.1-70b-instruct", "anthropic/claude-3-haiku", "google/gemini-flash-1.5"),
    ),
    "ollama": ProviderCapability(
        id="ollama",
        base_url="http://localhost:11434/v1",
        requires_key=False,
        supported_models=("llama3.2", "llama3.1", "mistral", "gemma2", "phi3"),
        supports_json_mode=False,
        receive_timeout=LOCAL_RECEIVE_TIMEOUT,
    ),
    "local": ProviderCapability(
        id="local",
        base_url="",
        requires_key=False,
        transcription_models=("base", "small", "tiny", "large-v3-turbo"),
    ),
    "custom": ProviderCapability(
        id="custom",
        base_url="",
        requires_key=True,
    ),
    "gemini_nano": ProviderCapability(
        id="gemini_nano",
        base_url="",
        requires_key=False,
    ),
}


def summary_from_answer(answer: Optional[str], provider_id: str) -> SummaryResult:
    """
    Parse and render a model answer.

    An empty or too-short answer yields an error result so the caller can
    fall back; anything longer always renders through the parser tiers.
    """
    if not answer or len(answer.strip()) < MIN_SUMMARY_CHARS:
        return SummaryResult(error=f"Empty or too short response from {provider_id}", provider_id=provider_id)

    parsed = parse_structured_response(answer)
    logger.info(f"Parsed {provider_id} response (tier {parsed.tier})")
    summary = parsed.summary
    return SummaryResult(
        summary_markdown=render_markdown(summary),
        title=summary.title or None,
        category=summary.category or None,
        tags=list(summary.tags),
        provider_id=provider_id,
    )


class CapabilityProvider(ABC):
    """Interface every transcription / summarization backend implements."""

    def __init__(self, capability: ProviderCapability):
        self.capability = capability

    @property
    def provider_id(self) -> str:
        return self.capability.id

    @abstractmethod
    def transcribe(self, audio_path: str, duration_seconds: float = 0.0) -> TranscriptionResult:
        """Convert speech to text."""

    @abstractmethod
    def summarize(self, transcript: str, speakers: Optional[List[str]] = None) -> SummaryResult:
        """Produce a rendered structured summary."""

    @abstractmethod
    def test_connection(self) -> ConnectionResult:
        """Check that the backend is reachable."""


def _listed_models(response, key: str) -> list:
    """Model list from a JSON listing body; ValueError when the body is not one."""
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"expected a JSON object, got {type(body).__name__}")
    models = body.get(key) or []
    if not isinstance(models, list):
        raise ValueError(f"'{key}' is not a list")
    return models


class OpenAICompatibleProvider(CapabilityProvider):
    """
    Any backend speaking the OpenAI chat completions and transcription API.

    Cloud transcription returns plain text without timestamps; the segment
    synthesizer handles that downstream.
    """

    def __init__(
        self,
        capability: ProviderCapability,
        api_key: str = "",
        model: str = "",
        base_url: str = "",
        transcription_model: str = "",
        language: Optional[str] = None,
    ):
        """
        Initialize provider configuration. No client is created yet.

        Args:
            capability: Provider table entry
            api_key: API key (may be empty for keyless backends)
            model: Chat model (defaults to the provider's first supported model)
            base_url: Endpoint override (defaults to the provider's base URL)
            transcription_model: Speech-to-text model, validated against the table
            language: Optional language hint for transcription
        """
        super().__init__(capability)
        self.api_key = api_key
        self.model = model or (capability.supported_models[0] if capability.supported_models else "")
        self.base_url = (base_url or capability.base_url).rstrip("/")
        self.transcription_model = transcription_model
        self.language = language
        self.client = None
        self._client_loaded = False

    def _load_client(self):
        """Create the openai client on first use."""
        if self._client_loaded:
            return

        import httpx
        from openai import OpenAI

        self.client = OpenAI(
            api_key=self.api_key or PLACEHOLDER_API_KEY,
            base_url=self.base_url or None,
            timeout=httpx.Timeout(self.capability.receive_timeout, connect=CONNECT_TIMEOUT),
            max_retries=0,
        )
        self._client_loaded = True
        logger.info(f"✓ {self.provider_id} client loaded (base URL: {self.base_url})")

    def _missing_configuration(self) -> Optional[str]:
        if self.capability.requires_key and not self.api_key:
            return f"No API key configured for {self.provider_id}"
        if not self.base_url:
            return f"No base URL configured for {self.provider_id}"
        return None

    def resolve_transcription_model(self) -> str:
        """Return the configured model, or the provider default when it is not offered."""
        valid_models = self.capability.transcription_models
        model = self.transcription_model
        if valid_models and model not in valid_models:
            logger.info(f"Transcription model '{model}' not valid for {self.provider_id}, using '{valid_models[0]}'")
            return valid_models[0]
        return model

    def transcribe(self, audio_path: str, duration_seconds: float = 0.0) -> TranscriptionResult:
        problem = self._missing_configuration()
        if problem:
            return TranscriptionResult(error=problem)

        model = self.resolve_transcription_model()
        try:
            self._load_client()
            logger.info(f"Transcribing {audio_path} ({duration_seconds:.0f}s) with {self.provider_id}/{model}")
            kwargs = {"model": model, "response_format": "verbose_json"}
            if self.language:
                kwargs["language"] = self.language
            with open(audio_path, "rb") as audio_file:
                response = self.client.audio.transcriptions.create(file=audio_file, **kwargs)
        except Exception as e:
            logger.error(f"Transcription failed ({self.provider_id}): {e}")
            return TranscriptionResult(error=str(e))

        return TranscriptionResult(
            transcript=getattr(response, "text", None),
            language=getattr(response, "language", None),
        )

    def summarize(self, transcript: str, speakers: Optional[List[str]] = None) -> SummaryResult:
        problem = self._missing_configuration()
        if problem:
            return SummaryResult(error=problem, provider_id=self.provider_id)

        request = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(speakers)},
                {"role": "user", "content": build_user_prompt(transcript)},
            ],
            "temperature": SUMMARY_TEMPERATURE,
        }
        if self.capability.supports_json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            answer = self._complete(request)
        except SummarizationError as e:
            logger.warning(f"⚠ Summarization failed ({self.provider_id}): {e}")
            return SummaryResult(error=str(e), provider_id=self.provider_id)

        logger.info(f"Summary response received, length: {len(answer or '')}")
        return summary_from_answer(answer, self.provider_id)

    def _complete(self, request: Dict) -> Optional[str]:
        """Run one chat completion; any client or transport failure becomes SummarizationError."""
        try:
            self._load_client()
            logger.info(f"Generating summary using {self.provider_id}/{self.model}...")
            response = self.client.chat.completions.create(**request)
            return response.choices[0].message.content
        except Exception as e:
            raise SummarizationError(str(e)) from e

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def test_connection(self) -> ConnectionResult:
        if not self.base_url:
            return ConnectionResult(False, f"No base URL configured for {self.provider_id}")

        timeout = (CONNECT_TIMEOUT, CONNECT_TIMEOUT)

        if self.provider_id == "ollama":
            ollama_base = self.base_url.removesuffix("/v1")
            try:
                response = requests.get(f"{ollama_base}/api/tags", timeout=timeout)
                response.raise_for_status()
                models = _listed_models(response, "models")
            except requests.exceptions.RequestException:
                return ConnectionResult(False, "Ollama connection failed. Make sure Ollama is running.")
            except ValueError as e:
                return ConnectionResult(False, f"Ollama answered with an unexpected body: {e}")
            return ConnectionResult(True, f"Ollama connected! Found {len(models)} models.")

        try:
            response = requests.get(f"{self.base_url}/models", headers=self._headers(), timeout=timeout)
        except requests.exceptions.RequestException as e:
            return ConnectionResult(False, f"Connection failed: {e}")

        if response.status_code != 200:
            return ConnectionResult(False, f"Connection failed (HTTP {response.status_code})")

        try:
            models = _listed_models(response, "data")
        except ValueError as e:
            return ConnectionResult(False, f"Unexpected response from {self.base_url}/models: {e}")
        return ConnectionResult(True, f"Connection successful! Found {len(models)} models.")


class LocalProvider(CapabilityProvider):
    """On-device Whisper transcription and extractive summarization."""

    def __init__(self, capability: ProviderCapability, transcriber=None, language: Optional[str] = None):
        super().__init__(capability)
        self.transcriber = transcriber
        self.language = language
        self.summarizer = ExtractiveSummarizer()

    def transcribe(self, audio_path: str, duration_seconds: float = 0.0) -> TranscriptionResult:
        if self.transcriber is None:
            return TranscriptionResult(error="Local transcription model is not available")

        try:
            marked_text, language = self.transcriber.transcribe_marked(audio_path, language=self.language)
        except Exception as e:
            logger.error(f"Local transcription failed: {e}")
            return TranscriptionResult(error=str(e))
        return TranscriptionResult(transcript=marked_text, language=language)

    def summarize(self, transcript: str, speakers: Optional[List[str]] = None) -> SummaryResult:
        summary = self.summarizer.summarize(transcript)
        return SummaryResult(
            summary_markdown=render_markdown(summary),
            title=summary.title or None,
            category=summary.category or None,
            tags=list(summary.tags),
            provider_id=self.provider_id,
        )

    def test_connection(self) -> ConnectionResult:
        if self.transcriber is None:
            return ConnectionResult(True, "Local extractive summarization available (no transcription model)")
        return ConnectionResult(True, f"Local Whisper model '{self.transcriber.model_name}' available")


def detect_on_device_capability() -> ConnectionResult:
    """
    Report whether a platform-provided on-device model can be used.

    No such integration exists for this runtime, so this always reports the
    capability as unavailable.
    """
    return ConnectionResult(False, "On-device model is not available on this platform")


class OnDeviceProvider(CapabilityProvider):
    """
    Platform on-device model backend.

    Known non-functional path: every call reports the capability as
    unavailable, and summarization falls back to the extractive summarizer.
    """

    def transcribe(self, audio_path: str, duration_seconds: float = 0.0) -> TranscriptionResult:
        return TranscriptionResult(error=detect_on_device_capability().message)

    def summarize(self, transcript: str, speakers: Optional[List[str]] = None) -> SummaryResult:
        return SummaryResult(error=detect_on_device_capability().message, provider_id=self.provider_id)

    def test_connection(self) -> ConnectionResult:
        return detect_on_device_capability()


def create_provider(provider_id: str, settings: ProcessingSettings, transcriber=None) -> CapabilityProvider:
    """
    Select the provider implementation for an id from the provider table.

    Args:
        provider_id: Key in PROVIDER_CAPABILITIES
        settings: Run settings snapshot supplying keys, URLs and models
        transcriber: Owned local Whisper transcriber, used by the local provider

    Raises:
        ValueError: If the provider id is unknown
    """
    capability = PROVIDER_CAPABILITIES.get(provider_id)
    if capability is None:
        raise ValueError(f"Unknown provider: {provider_id}")

    if provider_id == "local":
        return LocalProvider(capability, transcriber=transcriber, language=settings.language)
    if provider_id == "gemini_nano":
        return OnDeviceProvider(capability)

    return OpenAICompatibleProvider(
        capability,
        api_key=settings.api_key_for(provider_id),
        model=settings.summary_model,
        base_url=settings.base_url_for(provider_id),
        transcription_model=settings.transcription_model,
        language=settings.language,
    )
