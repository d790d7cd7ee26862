"""
Prompt construction for model-based summarization.

The system prompt pins the model to a single JSON object whose keys are the
StructuredSummary wire names, so every provider's answer can go through the
same parser.
"""

from typing import List, Optional

RESPONSE_SCHEMA = """{
  "title": "Descriptive title capturing the main topic (5-15 words)",
  "category": "Meeting/Interview/Support Call/Sales Call/Lecture/Personal/Podcast/Debate/Discussion/Tutorial/Other",
  "participants": [
    {
      "name": "Speaker name",
      "role": "Their role (Host/Guest/Interviewer/Expert/Caller/etc)",
      "speakingStyle": "Brief description of their communication style",
      "mainPoints": ["Their key arguments or points made"],
      "summary": "Detailed summary of their contributions and perspective"
    }
  ],
  "context": "Background context or setting of this conversation",
  "overview": "Comprehensive 2-3 sentence overview of the entire conversation",
  "keyPoints": ["Detailed key point 1", "Detailed key point 2", "...include ALL important points"],
  "detailedSummary": "Comprehensive multi-paragraph summary covering the full conversation flow, all major topics discussed, arguments made, conclusions reached.",
  "notableQuotes": ["Exact or paraphrased impactful quotes from the conversation"],
  "decisions": ["Any decisions made or conclusions reached"],
  "questionsRaised": ["Important questions asked or left unanswered"],
  "actionItems": [{"owner": "Person responsible", "task": "Specific action item", "context": "Why this action is needed"}],
  "topics": ["All topics discussed in order"],
  "emotionalTone": "Overall emotional tone and dynamics of the conversation",
  "tags": ["comprehensive", "list", "of", "relevant", "tags"]
}"""


def build_speaker_preamble(speakers: Optional[List[str]]) -> str:
    """Describe the known participants, or return an empty string."""
    if not speakers:
        return ""
    return (
        f"This conversation has {len(speakers)} participant(s): {', '.join(speakers)}.\n"
        "For each speaker, analyze their speaking style, main arguments, questions asked, "
        "and overall contribution to the conversation.\n"
    )


def build_system_prompt(speakers: Optional[List[str]] = None) -> str:
    preamble = build_speaker_preamble(speakers)
    return f"""You are an expert transcript analyzer. Create a comprehensive, detailed summary that captures EVERYTHING important from this transcript. Do not miss any key information, arguments, or context. {preamble}

Respond with a single JSON object only, using exactly these keys and nothing else:
{RESPONSE_SCHEMA}

Be thorough and detailed. Capture nuances, context, and the full arc of the conversation."""


def build_user_prompt(transcript: str) -> str:
    return f"Summarize this transcript:\n\n{transcript}"
