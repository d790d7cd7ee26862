from notescribe.summary.extractive import ExtractiveSummarizer

REVIEW = (
    "The team met to review the quarterly numbers today. "
    "Revenue grew slightly compared with the previous quarter. "
    "Marketing spend stayed flat during the whole period. "
    "Someone mentioned the coffee machine is broken again. "
    "The important decision is to hire two more engineers. "
    "Lunch options were discussed at great length by everyone. "
    "We will meet again next month to check progress."
)


def test_extract_summary_keeps_top_sentences_in_original_order():
    summary = ExtractiveSummarizer().extract_summary(REVIEW)

    assert summary == (
        "The team met to review the quarterly numbers today. "
        "Revenue grew slightly compared with the previous quarter. "
        "Marketing spend stayed flat during the whole period. "
        "The important decision is to hire two more engineers. "
        "Lunch options were discussed at great length by everyone."
    )


def test_short_transcript_is_its_own_summary():
    assert ExtractiveSummarizer().extract_summary("  Hi. Bye.  ") == "Hi. Bye."


def test_summarize_fills_structured_fields():
    summary = ExtractiveSummarizer().summarize(REVIEW)

    assert summary.title == "The team met to review the quarterly numbers today"
    assert summary.overview == "Review session to analyze performance and outcomes."
    assert summary.key_points == ["The important decision is to hire two more engineers"]
    assert summary.action_items == ["We will meet again next month to check progress"]
    assert "Updates & Status" in summary.topics
    assert len(summary.tags) == 5


def test_title_fallbacks():
    summarizer = ExtractiveSummarizer()

    assert summarizer.generate_title("Hi. This is the weekly platform sync call. Bye") == (
        "This is the weekly platform sync call"
    )
    long_run = "one two three four five six seven eight nine ten eleven twelve thirteen"
    assert summarizer.generate_title(long_run) == "one two three four five six seven eight..."
    assert summarizer.generate_title("Hi") == "Hi"
    assert summarizer.generate_title("") == "Recording"


def test_category_detection():
    summarizer = ExtractiveSummarizer()

    assert summarizer.detect_category("Let's check the agenda") == "Meeting"
    assert summarizer.detect_category("The candidate has experience") == "Interview"
    assert summarizer.detect_category("Plain chat") == "Other"


def test_purpose_falls_back_to_first_sentence():
    summarizer = ExtractiveSummarizer()

    assert summarizer.generate_purpose("Quick standup today") == (
        "Sync on project status, blockers, and upcoming tasks."
    )
    assert summarizer.generate_purpose("Hello everyone here. Bye") == "Hello everyone here"
    assert summarizer.generate_purpose("") == "Discussion session."


def test_key_points_fall_back_to_leading_sentences():
    summarizer = ExtractiveSummarizer()
    plain = "Alpha beta gamma delta. Epsilon zeta eta theta. Iota kappa lambda mu."

    assert summarizer.extract_key_points(plain) == [
        "Alpha beta gamma delta",
        "Epsilon zeta eta theta",
        "Iota kappa lambda mu",
    ]
    assert summarizer.extract_key_points("Short. Tiny.") == []


def test_action_items():
    transcript = "Bob will send the report. The sky is blue. We need to fix the build"

    assert ExtractiveSummarizer().extract_action_items(transcript) == [
        "Bob will send the report",
        "We need to fix the build",
    ]


def test_topics():
    summarizer = ExtractiveSummarizer()

    assert summarizer.extract_topics("The deployment failed with an error.") == [
        "Platform & Infrastructure",
        "Technical Issues",
    ]
    assert summarizer.extract_topics("We chatted about the weather for a long while today.") == [
        "General Discussion"
    ]
    assert summarizer.extract_topics("Hi.") == []


def test_tags_skip_short_and_stop_words():
    transcript = "deployment deployment deployment release release customer about about about"

    assert ExtractiveSummarizer().generate_tags(transcript) == ["deployment", "release", "customer"]
