from __future__ import annotations

import logging
from typing import Iterable, Protocol, Sequence

from .models import InteractionVerdict, SourceOutcome, drug_key

logger = logging.getLogger(__name__)


class InteractionSource(Protocol):
    name: str

    def check(self, new_drug: str, known_drugs: Sequence[str]) -> SourceOutcome: ...


def candidate_drugs(new_drug: str, known_drugs: Iterable[str]) -> list[str]:
    """{new_drug} plus the known list, new drug first, unique by lower-cased name."""
    ordered: list[str] = []
    seen: set[str] = set()
    for raw in [new_drug, *known_drugs]:
        if not isinstance(raw, str):
            continue
        name = raw.strip()
        key = drug_key(name)
        if not key or key in seen:
            continue
        seen.add(key)
        ordered.append(name)
    return ordered


def first_resolved(
    sources: Sequence[InteractionSource],
    new_drug: str,
    known_drugs: Sequence[str],
) -> tuple[InteractionVerdict | None, list[SourceOutcome]]:
    """Try sources in priority order; stop at the first one that resolves."""
    attempts: list[SourceOutcome] = []
    for source in sources:
        try:
            outcome = source.check(new_drug, known_drugs)
        except Exception as exc:
            outcome = SourceOutcome.failed(f"{type(exc).__name__}: {exc}")
        attempts.append(outcome)
        if outcome.is_resolved:
            logger.info("interaction check resolved by %s %s", source.name, outcome.meta or "")
            return outcome.verdict, attempts
        logger.warning("interaction source %s %s: %s", source.name, outcome.status, outcome.reason)
    return None, attempts


class InteractionChecker:
    def __init__(self, sources: Sequence[InteractionSource]) -> None:
        self.sources = list(sources)

    def check(self, new_drug: str, known_drugs: Sequence[str]) -> InteractionVerdict:
        verdict, _ = first_resolved(self.sources, new_drug, list(known_drugs))
        if verdict is None:
            return InteractionVerdict.neutral()
        return verdict
