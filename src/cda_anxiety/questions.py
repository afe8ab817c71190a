"""Question blocks loaded from the packaged content file."""
import json
from functools import lru_cache
from pathlib import Path

from cda_anxiety.errors import ConfigurationError
from cda_anxiety.models import QuestionBlock

CONTENT_DIR = Path(__file__).parent / "content"

BLOCK_COUNT = 5
BLOCK_SIZE = 5
QUESTION_COUNT = BLOCK_COUNT * BLOCK_SIZE
MIN_ANSWER = 0
MAX_ANSWER = 3

ANSWER_LABELS = {
    0: "Never",
    1: "Sometimes",
    2: "Often",
    3: "Almost always",
}


def block_of(index: int) -> int:
    """1-based block number owning a global question index."""
    return index // BLOCK_SIZE + 1


def global_index(block: int, position: int) -> int:
    return BLOCK_SIZE * (block - 1) + position


def block_key(block: int) -> str:
    return f"B{block}"


def parse_blocks(data: dict) -> tuple[QuestionBlock, ...]:
    raw_blocks = data.get("blocks", [])
    if len(raw_blocks) != BLOCK_COUNT:
        raise ConfigurationError(f"Expected {BLOCK_COUNT} blocks, found {len(raw_blocks)}")
    blocks = []
    for expected, raw in enumerate(raw_blocks, 1):
        questions = tuple(raw.get("questions", []))
        if raw.get("block") != expected:
            raise ConfigurationError(f"Block {raw.get('block')} out of order (expected {expected})")
        if len(questions) != BLOCK_SIZE:
            raise ConfigurationError(
                f"Block {expected} has {len(questions)} questions, expected {BLOCK_SIZE}"
            )
        blocks.append(QuestionBlock(
            block=expected,
            title=raw.get("title", f"Block {expected}"),
            subtitle=raw.get("subtitle", ""),
            questions=questions,
        ))
    return tuple(blocks)


@lru_cache(maxsize=None)
def load_blocks() -> tuple[QuestionBlock, ...]:
    """Load the five question blocks from questions.json."""
    data = json.loads((CONTENT_DIR / "questions.json").read_text(encoding="utf-8"))
    return parse_blocks(data)
