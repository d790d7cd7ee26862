"""
notescribe: recorded audio to speaker-attributed transcripts and structured summaries.
"""

__version__ = "0.1.0"
