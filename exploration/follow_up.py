"""Follow-up question extraction from free-form answer text."""
import re

from domain.models import FollowUpExtraction

MAX_FOLLOW_UPS = 3
MIN_DECLARATIVE_LENGTH = 15

# "#### Follow-up Questions", "**Follow Up Questions:**", "follow-up questions" ...
FOLLOW_UP_HEADING = re.compile(
    r"#{0,6}\s*\*{0,2}\s*follow[- ]up\s+questions\s*\*{0,2}\s*:?",
    re.IGNORECASE,
)
LEADING_ENUMERATOR = re.compile(r"^(\*{1,2})?\s*(\d+\.|-|\*)\s*(\*{1,2})?\s*")
BOLD_MARKERS = re.compile(r"\*{1,2}")


def clean_follow_up_line(line: str) -> str:
    """Strip list enumerators and bold markers from one candidate line."""
    line = LEADING_ENUMERATOR.sub("", line.strip(), count=1)
    return BOLD_MARKERS.sub("", line).strip()


def looks_like_follow_up(line: str) -> bool:
    """
    Heuristic filter for candidate lines.

    Questions are kept; so are longer declarative prompts
    ("Consider the case where..."), which models often emit instead.
    """
    if "?" in line or "？" in line:
        return True
    return len(line) > MIN_DECLARATIVE_LENGTH


def extract_follow_ups(text: str) -> FollowUpExtraction:
    """
    Split an answer into its main body and up to three follow-up questions.

    Best-effort parse of model output: when no follow-up heading is present
    the whole text is the body and there are no questions.

    Args:
        text: Raw answer text

    Returns:
        FollowUpExtraction with main_text and follow_up_questions
    """
    text = text or ""
    match = FOLLOW_UP_HEADING.search(text)
    if match is None:
        return FollowUpExtraction(main_text=text, follow_up_questions=[])

    before = text[: match.start()]
    after = text[match.end():]

    questions: list[str] = []
    for raw_line in after.split("\n"):
        if not raw_line.strip():
            continue
        line = clean_follow_up_line(raw_line)
        if not looks_like_follow_up(line):
            continue
        questions.append(line)
        if len(questions) == MAX_FOLLOW_UPS:
            break

    return FollowUpExtraction(main_text=before.strip(), follow_up_questions=questions)


class FollowUpExtractor:
    """Callable wrapper so the extractor can be injected and replaced in tests."""

    def __call__(self, text: str) -> FollowUpExtraction:
        return extract_follow_ups(text)
