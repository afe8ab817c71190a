"""Data classes for the assessment domain model."""
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class QuestionBlock:
    block: int
    title: str
    subtitle: str = ""
    questions: tuple[str, ...] = ()


@dataclass(frozen=True)
class InterpretationRange:
    min: int
    max: int
    level: str
    suggestions: str
    color_bg: str
    color_text: str

    def contains(self, total: int) -> bool:
        return self.min <= total <= self.max


@dataclass(frozen=True)
class Result:
    date: str
    total_score: int
    block_scores: Mapping[str, int] = field(default_factory=dict)
    level: str = ""
    suggestions: str = ""
    color_bg: str = ""
    color_text: str = ""
    id: Optional[int | str] = None

    def __post_init__(self):
        # Snapshots are shared between listeners, so the mapping is read-only.
        object.__setattr__(self, "block_scores", MappingProxyType(dict(self.block_scores)))

    def finalize(self, id: int | str, date: str) -> "Result":
        """Copy carrying the backend-assigned id and date."""
        return replace(self, id=id, date=date)

    def to_dict(self) -> dict:
        """Persisted record, camelCase keys as stored in the history blob."""
        return {
            "id": self.id,
            "date": self.date,
            "totalScore": self.total_score,
            "blockScores": dict(self.block_scores),
            "level": self.level,
            "suggestions": self.suggestions,
            "colorBg": self.color_bg,
            "colorText": self.color_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Result":
        if not isinstance(data, dict):
            raise TypeError(f"Result record must be a mapping, got {type(data).__name__}")
        block_scores = data.get("blockScores") or {}
        if not isinstance(block_scores, dict):
            raise TypeError("blockScores must be a mapping")
        return cls(
            id=data.get("id"),
            date=str(data["date"]),
            total_score=int(data["totalScore"]),
            block_scores={str(k): int(v) for k, v in block_scores.items()},
            level=str(data.get("level", "")),
            suggestions=str(data.get("suggestions", "")),
            color_bg=str(data.get("colorBg", "")),
            color_text=str(data.get("colorText", "")),
        )
