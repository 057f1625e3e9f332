"""Schema of the narrative analysis returned by the text-generation model.

The model's output is not trusted: every field is optional and malformed
values are defaulted (dropped to ``None``, coerced to strings, clamped into
range) instead of failing validation. ``parse_narrative`` never raises; text
that is not a JSON object degrades to a summary-only result.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from stocklens.exceptions import ErrorKind
from stocklens.utils.llm import parse_json_object
from stocklens.utils.logging import get_logger

log = get_logger(__name__)


class Stance(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


# =============================================================================
# COERCION HELPERS
# =============================================================================


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _text_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return None
    return [t for t in (_text(v) for v in value) if t is not None]


def _probability(value: Any) -> float | None:
    """0..1 probability; "75%" and bare values in (1, 100] are read as percentages."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%")) / (100 if value.strip().endswith("%") else 1)
        except (ValueError, OverflowError):
            return None
    if not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    if not math.isfinite(value):
        return None
    if 1.0 < value <= 100.0:
        value /= 100
    return min(max(value, 0.0), 1.0)


def _mapping_or_none(value: Any) -> Any:
    return value if isinstance(value, dict) else None


def _records(value: Any, *required: str) -> list[dict] | None:
    """Keep only dict entries that carry every ``required`` key."""
    if not isinstance(value, list):
        return None
    return [v for v in value if isinstance(v, dict) and all(_text(v.get(k)) is not None for k in required)]


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


# =============================================================================
# NESTED SECTIONS
# =============================================================================


class Signal(_Lenient):
    name: str
    status: str

    @field_validator("name", "status", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        return _text(v)


class TechnicalView(_Lenient):
    supports: list[str] | None = None
    resistances: list[str] | None = None
    signals: list[Signal] | None = None

    @field_validator("supports", "resistances", mode="before")
    @classmethod
    def _coerce_lists(cls, v: Any) -> list[str] | None:
        return _text_list(v)

    @field_validator("signals", mode="before")
    @classmethod
    def _coerce_signals(cls, v: Any) -> list[dict] | None:
        return _records(v, "name", "status")


class Scenario(_Lenient):
    prob: float | None = None           # 0..1
    target: str | None = None
    drivers: list[str] | None = None

    @field_validator("prob", mode="before")
    @classmethod
    def _coerce_prob(cls, v: Any) -> float | None:
        return _probability(v)

    @field_validator("target", mode="before")
    @classmethod
    def _coerce_target(cls, v: Any) -> str | None:
        return _text(v)

    @field_validator("drivers", mode="before")
    @classmethod
    def _coerce_drivers(cls, v: Any) -> list[str] | None:
        return _text_list(v)


class Scenarios(_Lenient):
    bull: Scenario | None = None
    base: Scenario | None = None
    bear: Scenario | None = None

    @field_validator("bull", "base", "bear", mode="before")
    @classmethod
    def _coerce_scenario(cls, v: Any) -> Any:
        return _mapping_or_none(v)


class Multiple(_Lenient):
    name: str
    value: str
    peer_range: str | None = None

    @field_validator("name", "value", "peer_range", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        return _text(v)


class Valuation(_Lenient):
    multiples: list[Multiple] | None = None
    notes: list[str] | None = None

    @field_validator("multiples", mode="before")
    @classmethod
    def _coerce_multiples(cls, v: Any) -> list[dict] | None:
        return _records(v, "name", "value")

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, v: Any) -> list[str] | None:
        return _text_list(v)


class Playbook(_Lenient):
    entry: str | None = None
    exits: list[str] | None = None
    invalidation: str | None = None
    position: str | None = None
    timeframe: str | None = None

    @field_validator("entry", "invalidation", "position", "timeframe", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str | None:
        return _text(v)

    @field_validator("exits", mode="before")
    @classmethod
    def _coerce_exits(cls, v: Any) -> list[str] | None:
        return _text_list(v)


# =============================================================================
# RESULT
# =============================================================================


class NarrativeResult(_Lenient):
    """Structured narrative analysis; absent sections are None."""

    ticker: str | None = None
    stance: Stance | None = None
    confidence: float | None = None     # 0..1
    summary: str | None = None
    highlights: list[str] | None = None
    technical: TechnicalView | None = None
    actions: list[str] | None = None
    risks: list[str] | None = None
    horizon: str | None = None
    as_of: str | None = None
    disclaimers: list[str] | None = None

    # Richer optional sections
    rationale_long: list[str] | None = None
    catalysts: list[str] | None = None
    scenarios: Scenarios | None = None
    valuation: Valuation | None = None
    playbook: Playbook | None = None
    watchlist: list[str] | None = None
    confidence_notes: list[str] | None = None
    data_used: list[str] | None = None

    @field_validator("stance", mode="before")
    @classmethod
    def _coerce_stance(cls, v: Any) -> str | None:
        if not isinstance(v, str):
            return None
        v = v.strip().lower()
        return v if v in {s.value for s in Stance} else None

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, v: Any) -> float | None:
        return _probability(v)

    @field_validator("ticker", "summary", "horizon", "as_of", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str | None:
        return _text(v)

    @field_validator(
        "highlights",
        "actions",
        "risks",
        "disclaimers",
        "rationale_long",
        "catalysts",
        "watchlist",
        "confidence_notes",
        "data_used",
        mode="before",
    )
    @classmethod
    def _coerce_lists(cls, v: Any) -> list[str] | None:
        return _text_list(v)

    @field_validator("technical", "scenarios", "valuation", "playbook", mode="before")
    @classmethod
    def _coerce_sections(cls, v: Any) -> Any:
        return _mapping_or_none(v)

    def is_summary_only(self) -> bool:
        return self.model_dump(exclude_none=True).keys() <= {"summary"}


def parse_narrative(text: str) -> NarrativeResult:
    """
    Parse the model's raw text into a NarrativeResult.

    Text that is not a JSON object (after stripping markdown fences) yields a
    result carrying only ``summary=text``.
    """
    try:
        data = parse_json_object(text, context="narrative response")
    except ValueError:
        return NarrativeResult(summary=text)

    try:
        return NarrativeResult.model_validate(data)
    except ValidationError as e:
        log.warning("narrative_validation_failed", errors=e.errors())
        return NarrativeResult(summary=text)


@dataclass
class AnalysisResult:
    """Outcome of one narrative request."""
    ok: bool
    source: str | None = None
    analysis: NarrativeResult | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def failure(cls, error: str, kind: ErrorKind, source: str | None = None) -> "AnalysisResult":
        return cls(ok=False, source=source, error=error, error_kind=kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "source": self.source,
            "analysis": self.analysis.model_dump(mode="json", exclude_none=True) if self.analysis else None,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }
