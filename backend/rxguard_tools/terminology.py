from __future__ import annotations

import os
from typing import Any, Sequence

import httpx

from rxguard_core.checker import candidate_drugs
from rxguard_core.env import read_bool_env, read_float_env
from rxguard_core.models import SOURCE_TERMINOLOGY_API, InteractionVerdict, SourceOutcome

_MAX_DETAIL_PAIRS = 5
INSUFFICIENT_DATA_DETAILS = "Insufficient drug data to check."
NO_KNOWN_INTERACTIONS_DETAILS = "No known interactions found."


class TerminologyError(Exception):
    pass


def _first_rxnorm_id(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    group = payload.get("idGroup")
    if not isinstance(group, dict):
        return None
    raw = group.get("rxnormId")
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def flatten_interaction_pairs(payload: Any) -> list[str]:
    """Flatten fullInteractionTypeGroup -> fullInteractionType -> interactionPair into "A + B" labels."""
    if not isinstance(payload, dict):
        return []
    pairs: list[str] = []
    for group in payload.get("fullInteractionTypeGroup") or []:
        if not isinstance(group, dict):
            continue
        for interaction_type in group.get("fullInteractionType") or []:
            if not isinstance(interaction_type, dict):
                continue
            names: list[str] = []
            for pair in interaction_type.get("interactionPair") or []:
                if not isinstance(pair, dict):
                    continue
                concepts = pair.get("interactionConcept") or []
                first = concepts[0] if isinstance(concepts, list) and concepts else None
                item = first.get("minConceptItem") if isinstance(first, dict) else None
                name = item.get("name") if isinstance(item, dict) else None
                if isinstance(name, str) and name.strip():
                    names.append(name.strip())
            if names:
                pairs.append(" + ".join(names))
    return pairs


def summarize_pairs(pairs: list[str]) -> str:
    if not pairs:
        return NO_KNOWN_INTERACTIONS_DETAILS
    more = " ..." if len(pairs) > _MAX_DETAIL_PAIRS else ""
    return f"Possible interaction(s): {'; '.join(pairs[:_MAX_DETAIL_PAIRS])}{more}"


class RxNavClient:
    def __init__(self) -> None:
        self.base_url = (os.getenv("RXNAV_BASE_URL") or "https://rxnav.nlm.nih.gov/REST").strip().rstrip("/")
        self.timeout = read_float_env("RXGUARD_HTTP_TIMEOUT_SECONDS", default=8.0, minimum=1.0, maximum=30.0)
        self.disable_external = read_bool_env("RXGUARD_DISABLE_EXTERNAL_WEB")

    def _get_json(self, path: str, params: dict[str, str]) -> Any:
        try:
            response = httpx.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise TerminologyError(f"RxNav timed out on {path}") from exc
        except httpx.HTTPError as exc:
            raise TerminologyError(f"RxNav unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise TerminologyError(f"RxNav returned HTTP {response.status_code} on {path}")
        if response.status_code >= 400:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TerminologyError(f"RxNav returned invalid JSON on {path}") from exc

    def resolve_rxcui(self, name: str) -> str | None:
        return _first_rxnorm_id(self._get_json("/rxcui.json", {"name": name}))

    def interaction_pairs(self, rxcuis: Sequence[str]) -> list[str]:
        payload = self._get_json("/interaction/list.json", {"rxcui": ",".join(rxcuis)})
        if payload is None:
            raise TerminologyError("RxNav rejected the interaction-list request")
        return flatten_interaction_pairs(payload)


class TerminologySource:
    name = SOURCE_TERMINOLOGY_API

    def __init__(self, client: RxNavClient | None = None) -> None:
        self.client = client or RxNavClient()

    def check(self, new_drug: str, known_drugs: Sequence[str]) -> SourceOutcome:
        if self.client.disable_external:
            return SourceOutcome.unavailable("external web access is disabled")
        try:
            rxcuis: list[str] = []
            for name in candidate_drugs(new_drug, known_drugs):
                rxcui = self.client.resolve_rxcui(name)
                if rxcui:
                    rxcuis.append(rxcui)
            if len(rxcuis) < 2:
                verdict = InteractionVerdict(
                    has_conflict=False,
                    details=INSUFFICIENT_DATA_DETAILS,
                    source=self.name,
                )
                return SourceOutcome.resolved(verdict, resolved_ids=len(rxcuis))
            pairs = self.client.interaction_pairs(rxcuis)
        except TerminologyError as exc:
            return SourceOutcome.failed(str(exc))
        verdict = InteractionVerdict(has_conflict=bool(pairs), details=summarize_pairs(pairs), source=self.name)
        return SourceOutcome.resolved(verdict, resolved_ids=len(rxcuis), pair_count=len(pairs))
