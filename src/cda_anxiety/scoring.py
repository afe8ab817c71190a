"""Scoring of a completed questionnaire."""
from datetime import datetime, timezone

from cda_anxiety.interpretation import INTERPRETATION_RANGES, resolve
from cda_anxiety.models import Result
from cda_anxiety.questions import BLOCK_COUNT, QUESTION_COUNT, block_key, block_of


def utcnow_iso(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat()


def answered_count(answers: dict) -> int:
    return sum(1 for i in range(QUESTION_COUNT) if i in answers)


def score(answers: dict, now: datetime | None = None, ranges: tuple = INTERPRETATION_RANGES) -> Result:
    """Compute total and per-block scores and attach the interpretation band.

    Unanswered questions count as 0. Values are summed as given; answers
    outside 0-3 are not clamped or rejected. The returned Result has no id.
    """
    total = 0
    blocks = {block_key(b): 0 for b in range(1, BLOCK_COUNT + 1)}
    for i in range(QUESTION_COUNT):
        value = answers.get(i, 0)
        total += value
        blocks[block_key(block_of(i))] += value

    band = resolve(total, ranges)
    return Result(
        date=utcnow_iso(now),
        total_score=total,
        block_scores=blocks,
        level=band.level,
        suggestions=band.suggestions,
        color_bg=band.color_bg,
        color_text=band.color_text,
    )
