from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


SOURCE_BROWSER_SCRAPE = "browser-scrape"
SOURCE_TERMINOLOGY_API = "terminology-api"
SOURCE_ERROR = "error"
VERDICT_SOURCES = {SOURCE_BROWSER_SCRAPE, SOURCE_TERMINOLOGY_API, SOURCE_ERROR}

OUTCOME_RESOLVED = "resolved"
OUTCOME_UNAVAILABLE = "unavailable"
OUTCOME_FAILED = "failed"

SESSION_TEXT_CAP = 50000
NEUTRAL_FAILURE_DETAILS = "Conflict check failed. Please verify manually."


class InputValidationError(Exception):
    pass


class DocumentParseError(Exception):
    def __init__(self, message: str, *, readable: bool = False) -> None:
        super().__init__(message)
        self.readable = readable


class SourceUnavailableError(Exception):
    pass


def drug_key(name: str) -> str:
    return (name or "").strip().lower()


def is_candidate_name(name: str) -> bool:
    return len((name or "").strip()) > 2


def dedupe_drugs(names: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in names:
        name = (raw or "").strip()
        key = drug_key(name)
        if not is_candidate_name(name) or key in seen:
            continue
        seen.add(key)
        ordered.append(name)
    return ordered


@dataclass(frozen=True)
class DocumentSession:
    text: str | None = None
    drugs: tuple[str, ...] = ()
    uploaded_at: str | None = None

    @property
    def loaded(self) -> bool:
        return bool(self.text)

    def as_status(self) -> dict[str, Any]:
        return {
            "loaded": self.loaded,
            "drugCount": len(self.drugs),
            "drugs": list(self.drugs),
        }


@dataclass(frozen=True)
class InteractionVerdict:
    has_conflict: bool
    details: str
    source: str

    def __post_init__(self) -> None:
        if self.source not in VERDICT_SOURCES:
            raise ValueError(f"Unknown verdict source: {self.source}")

    @classmethod
    def neutral(cls) -> "InteractionVerdict":
        return cls(has_conflict=False, details=NEUTRAL_FAILURE_DETAILS, source=SOURCE_ERROR)

    def as_payload(self) -> dict[str, Any]:
        return {"hasConflict": self.has_conflict, "details": self.details, "source": self.source}


@dataclass(frozen=True)
class SourceOutcome:
    """Result of one interaction source: a verdict, a skip, or a failure."""

    status: str
    verdict: InteractionVerdict | None = None
    reason: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def resolved(cls, verdict: InteractionVerdict, **meta: Any) -> "SourceOutcome":
        return cls(status=OUTCOME_RESOLVED, verdict=verdict, meta=meta)

    @classmethod
    def unavailable(cls, reason: str) -> "SourceOutcome":
        return cls(status=OUTCOME_UNAVAILABLE, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "SourceOutcome":
        return cls(status=OUTCOME_FAILED, reason=reason)

    @property
    def is_resolved(self) -> bool:
        return self.status == OUTCOME_RESOLVED and self.verdict is not None
