"""
Deterministic extractive summarization.

Used when no model-based provider is configured, or when one fails or returns
an empty answer. Pure string processing over the transcript, so it cannot
fail and needs no network or model weights.
"""

import re
from collections import Counter
from typing import Dict, List

from .models import StructuredSummary

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NON_WORD = re.compile(r"[^\w\s]")

SALIENCE_KEYWORDS = ["important", "key", "main", "conclusion", "decision"]

KEY_POINT_MARKERS = [
    "important",
    "key point",
    "note that",
    "remember",
    "conclusion",
    "decision",
    "critical",
    "blocker",
    "priority",
]

ACTION_MARKERS = [
    "will ",
    "should ",
    "need to",
    "must ",
    "action",
    "todo",
    "follow up",
    "next step",
    "deadline",
    "assigned to",
]

PURPOSES = [
    (["sync", "standup", "status"], "Sync on project status, blockers, and upcoming tasks."),
    (["interview", "candidate"], "Interview session to evaluate candidate qualifications."),
    (["planning", "roadmap"], "Planning session to discuss roadmap and priorities."),
    (["review", "retrospective"], "Review session to analyze performance and outcomes."),
    (["training", "onboarding"], "Training or onboarding session."),
]

CATEGORIES = [
    ("Meeting", ["meeting", "agenda", "minutes", "standup", "sync"]),
    ("Interview", ["interview", "candidate", "position", "experience"]),
    ("Support Call", ["support", "issue", "problem", "help", "ticket"]),
    ("Sales Call", ["sale", "price", "offer", "deal", "proposal"]),
    ("Lecture", ["lecture", "class", "lesson", "course"]),
]

TOPIC_PATTERNS: Dict[str, List[str]] = {
    "Platform & Infrastructure": ["platform", "infrastructure", "api", "deployment", "release"],
    "Security & Compliance": ["security", "compliance", "audit", "iso", "pen test"],
    "Client Projects": ["client", "customer", "project"],
    "Internal Initiatives": ["internal", "initiative", "team"],
    "Technical Issues": ["bug", "issue", "error", "fix"],
    "Updates & Status": ["status", "update", "progress", "complete"],
}

STOP_WORDS = {
    "the", "and", "that", "this", "with", "from", "have", "been", "were", "they",
    "what", "when", "where", "which", "there", "their", "about", "would", "could",
    "should", "these", "those", "other", "into", "more", "some", "than", "them",
    "then", "just", "over", "also", "going", "being",
}


def split_sentences(transcript: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(transcript) if s.strip()]


def _contains_any(text: str, keywords: List[str]) -> bool:
    return any(keyword in text for keyword in keywords)


class ExtractiveSummarizer:
    """
    Score and select transcript sentences without any model.

    Example:
        summary = ExtractiveSummarizer().summarize(transcript)
        print(summary.detailed_summary)
    """

    summary_sentences = 5

    def summarize(self, transcript: str) -> StructuredSummary:
        return StructuredSummary(
            title=self.generate_title(transcript),
            category=self.detect_category(transcript),
            overview=self.generate_purpose(transcript),
            key_points=self.extract_key_points(transcript),
            detailed_summary=self.extract_summary(transcript),
            action_items=self.extract_action_items(transcript),
            topics=self.extract_topics(transcript),
            tags=self.generate_tags(transcript),
        )

    def score_sentence(self, sentence: str, index: int, total: int) -> float:
        """Position, length band and salience keywords."""
        score = 0.0
        if index < 3:
            score += 2.0 - index * 0.5
        if index >= total - 2:
            score += 1.0

        word_count = len(sentence.split())
        if 8 <= word_count <= 25:
            score += 1.0

        if _contains_any(sentence.lower(), SALIENCE_KEYWORDS):
            score += 1.5
        return score

    def extract_summary(self, transcript: str) -> str:
        sentences = [s for s in split_sentences(transcript) if len(s) > 20]
        if not sentences:
            return transcript.strip()

        ranked = sorted(
            range(len(sentences)),
            key=lambda i: self.score_sentence(sentences[i], i, len(sentences)),
            reverse=True,
        )
        chosen = sorted(ranked[: self.summary_sentences])
        return ". ".join(sentences[i] for i in chosen) + "."

    def generate_title(self, transcript: str) -> str:
        sentences = [s.strip() for s in _SENTENCE_SPLIT.split(transcript)]
        for sentence in sentences:
            if 5 <= len(sentence.split()) <= 12:
                return sentence

        first = sentences[0] if sentences else ""
        words = first.split()
        if len(words) > 8:
            return " ".join(words[:8]) + "..."
        return first or "Recording"

    def generate_purpose(self, transcript: str) -> str:
        lower = transcript.lower()
        for keywords, purpose in PURPOSES:
            if _contains_any(lower, keywords):
                return purpose

        sentences = split_sentences(transcript)
        if sentences:
            first = sentences[0]
            return first if len(first) <= 100 else first[:97] + "..."
        return "Discussion session."

    def detect_category(self, transcript: str) -> str:
        lower = transcript.lower()
        for category, keywords in CATEGORIES:
            if _contains_any(lower, keywords):
                return category
        return "Other"

    def extract_key_points(self, transcript: str) -> List[str]:
        sentences = [s for s in split_sentences(transcript) if 15 < len(s) < 200]
        key_points = [s for s in sentences if _contains_any(s.lower(), KEY_POINT_MARKERS)][:5]
        if not key_points and len(sentences) >= 3:
            return sentences[:3]
        return key_points

    def extract_action_items(self, transcript: str) -> List[str]:
        return [s for s in split_sentences(transcript) if _contains_any(s.lower(), ACTION_MARKERS)][:10]

    def extract_topics(self, transcript: str) -> List[str]:
        lower = transcript.lower()
        topics = [name for name, keywords in TOPIC_PATTERNS.items() if _contains_any(lower, keywords)]
        if not topics and any(len(s) > 20 for s in split_sentences(transcript)):
            topics.append("General Discussion")
        return topics

    def generate_tags(self, transcript: str) -> List[str]:
        words = _NON_WORD.sub("", transcript.lower()).split()
        counts = Counter(w for w in words if len(w) > 4 and w not in STOP_WORDS)
        return [word for word, _ in counts.most_common(5)]
