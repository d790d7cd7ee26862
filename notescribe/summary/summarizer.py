"""
Summarization orchestration with a deterministic fallback.

The orchestrator dispatches to whichever provider the run was configured
with. If that provider errors, or answers with nothing usable, the transcript
is summarized by the extractive summarizer instead, so summarization as a
whole never fails.
"""

import logging
from typing import List, Optional

from ..errors import SummarizationError
from .extractive import ExtractiveSummarizer
from .models import SummaryResult
from .parser import render_markdown
from .providers import EXTRACTIVE_PROVIDER_ID, MIN_SUMMARY_CHARS, CapabilityProvider

logger = logging.getLogger(__name__)

__all__ = ["SummarizationOrchestrator", "MIN_SUMMARY_CHARS"]


class SummarizationOrchestrator:
    """
    Produce a SummaryResult for a transcript.

    Example:
        orchestrator = SummarizationOrchestrator(provider)
        result = orchestrator.summarize(transcript, speakers=["Speaker 1", "Speaker 2"])
        print(result.summary_markdown)
    """

    def __init__(self, provider: Optional[CapabilityProvider], fallback: Optional[ExtractiveSummarizer] = None):
        """
        Args:
            provider: Configured provider, or None to go straight to the fallback
            fallback: Extractive summarizer used when the provider fails
        """
        self.provider = provider
        self.fallback = fallback or ExtractiveSummarizer()

    def summarize(self, transcript: str, speakers: Optional[List[str]] = None) -> SummaryResult:
        """
        Summarize with the provider, falling back to extractive summarization.

        Args:
            transcript: Flat transcript text
            speakers: Known participant labels, passed to the prompt

        Returns:
            SummaryResult; provider_id is "extractive" when the fallback was used
            and error carries the provider failure that caused it
        """
        failure = None
        if self.provider is not None:
            try:
                result = self.provider.summarize(transcript, speakers=speakers)
            except SummarizationError as e:
                result = SummaryResult(error=str(e), provider_id=self.provider.provider_id)
            except Exception as e:
                logger.error(f"Provider {self.provider.provider_id} crashed during summarization: {e}")
                result = SummaryResult(error=str(e), provider_id=self.provider.provider_id)

            if not result.error and result.summary_markdown and len(result.summary_markdown.strip()) >= MIN_SUMMARY_CHARS:
                return result

            failure = result.error or "Empty summary"
            logger.warning(f"⚠ Cloud summary failed: {failure}, using extractive")

        return self.summarize_extractive(transcript, failure)

    def summarize_extractive(self, transcript: str, failure: Optional[str] = None) -> SummaryResult:
        summary = self.fallback.summarize(transcript)
        return SummaryResult(
            summary_markdown=render_markdown(summary),
            title=summary.title or None,
            category=summary.category or None,
            tags=list(summary.tags),
            error=failure,
            provider_id=EXTRACTIVE_PROVIDER_ID,
        )
