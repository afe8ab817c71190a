"""Interpretation bands for the total score and severity helpers."""
from cda_anxiety.models import InterpretationRange

INTERPRETATION_RANGES = (
    InterpretationRange(
        min=0, max=15,
        level="Low anxiety",
        suggestions=(
            "Your answers point to a low level of anxiety. Keep the habits that "
            "support your balance: regular sleep, physical activity and time for "
            "the people and activities you enjoy."
        ),
        color_bg="#ECFDF5", color_text="#065F46",
    ),
    InterpretationRange(
        min=16, max=30,
        level="Mild anxiety",
        suggestions=(
            "Some signs of anxiety are present. Short breathing exercises, pauses "
            "during the day and writing down recurring worries can help you notice "
            "and reduce the tension early."
        ),
        color_bg="#F0FDF4", color_text="#166534",
    ),
    InterpretationRange(
        min=31, max=45,
        level="Moderate anxiety",
        suggestions=(
            "Anxiety is already affecting several areas of your life. Consider "
            "structured relaxation practice, reviewing your routine and talking to "
            "a mental health professional about what you have noticed."
        ),
        color_bg="#FFFBEB", color_text="#92400E",
    ),
    InterpretationRange(
        min=46, max=60,
        level="High anxiety",
        suggestions=(
            "Your answers indicate a high level of anxiety. Professional support is "
            "recommended so that you can work on the causes and learn strategies "
            "to manage the symptoms."
        ),
        color_bg="#FEF2F2", color_text="#991B1B",
    ),
    InterpretationRange(
        min=61, max=75,
        level="Severe anxiety",
        suggestions=(
            "Anxiety is very intense right now. Please look for a psychologist or "
            "psychiatrist as soon as possible, and reach out to someone you trust "
            "or an emergency service if you feel unsafe."
        ),
        color_bg="#FEE2E2", color_text="#7F1D1D",
    ),
)

SEVERITY_COLORS = {
    "low": "green",
    "attention": "yellow",
    "high": "red",
    "neutral": "gold1",
}


def resolve(total: int, ranges: tuple = INTERPRETATION_RANGES) -> InterpretationRange:
    """Return the first range containing total.

    Totals outside every configured range fall back to the first entry
    rather than raising.
    """
    for band in ranges:
        if band.contains(total):
            return band
    return ranges[0]


def block_severity(value: int) -> str:
    if value > 10:
        return "high"
    elif value > 5:
        return "attention"
    return "low"


def total_tone(total: int) -> str:
    if total > 45:
        return "high"
    elif total < 16:
        return "low"
    return "neutral"


def severity_color(severity: str) -> str:
    return SEVERITY_COLORS.get(severity, "white")
