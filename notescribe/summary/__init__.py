"""
Summarization: providers, the resilient response parser and the extractive fallback.
"""

from .extractive import ExtractiveSummarizer
from .models import ActionItem, ConnectionResult, Participant, StructuredSummary, SummaryResult, TranscriptionResult
from .parser import ParsedResponse, parse_structured_response, render_markdown
from .providers import (
    MIN_SUMMARY_CHARS,
    PROVIDER_CAPABILITIES,
    CapabilityProvider,
    LocalProvider,
    OnDeviceProvider,
    OpenAICompatibleProvider,
    ProviderCapability,
    create_provider,
    detect_on_device_capability,
)
from .summarizer import SummarizationOrchestrator

__all__ = [
    "ActionItem",
    "CapabilityProvider",
    "ConnectionResult",
    "ExtractiveSummarizer",
    "LocalProvider",
    "MIN_SUMMARY_CHARS",
    "OnDeviceProvider",
    "OpenAICompatibleProvider",
    "PROVIDER_CAPABILITIES",
    "ParsedResponse",
    "Participant",
    "ProviderCapability",
    "StructuredSummary",
    "SummarizationOrchestrator",
    "SummaryResult",
    "TranscriptionResult",
    "create_provider",
    "detect_on_device_capability",
    "parse_structured_response",
    "render_markdown",
]
