from __future__ import annotations

from typing import Any

import httpx

from rxguard_tools.terminology import RxNavClient, TerminologySource, flatten_interaction_pairs, summarize_pairs

_RXCUIS = {"warfarin": "11289", "aspirin": "1191", "ibuprofen": "5640"}


class _FakeResponse:
    def __init__(self, *, status_code: int = 200, json_data: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json_data


def _interaction_payload(*pairs: tuple[str, str]) -> dict[str, Any]:
    return {
        "fullInteractionTypeGroup": [
            {
                "sourceName": "DrugBank",
                "fullInteractionType": [
                    {
                        "interactionPair": [
                            {"interactionConcept": [{"minConceptItem": {"name": first}}]},
                            {"interactionConcept": [{"minConceptItem": {"name": second}}]},
                        ]
                    }
                    for first, second in pairs
                ],
            }
        ]
    }


def _fake_rxnav(interactions: dict[str, Any], calls: list[tuple[str, dict[str, Any]]]):
    def fake_get(url: str, **kwargs):
        params = dict(kwargs.get("params") or {})
        calls.append((url, params))
        assert kwargs.get("timeout")
        if url.endswith("/rxcui.json"):
            rxcui = _RXCUIS.get(str(params.get("name", "")).lower())
            return _FakeResponse(json_data={"idGroup": {"name": params.get("name"), "rxnormId": [rxcui] if rxcui else []}})
        if url.endswith("/interaction/list.json"):
            return _FakeResponse(json_data=interactions)
        return _FakeResponse(status_code=404)

    return fake_get


def test_terminology_source_reports_flattened_pairs(monkeypatch):
    monkeypatch.delenv("RXGUARD_DISABLE_EXTERNAL_WEB", raising=False)
    calls: list[tuple[str, dict[str, Any]]] = []
    payload = _interaction_payload(("warfarin", "aspirin"), ("warfarin", "ibuprofen"))
    monkeypatch.setattr("rxguard_tools.terminology.httpx.get", _fake_rxnav(payload, calls))

    outcome = TerminologySource().check("Warfarin", ["Aspirin", "Ibuprofen", "Unknownium"])

    assert outcome.is_resolved
    assert outcome.verdict is not None
    assert outcome.verdict.source == "terminology-api"
    assert outcome.verdict.has_conflict is True
    assert outcome.verdict.details == "Possible interaction(s): warfarin + aspirin; warfarin + ibuprofen"
    interaction_calls = [params for url, params in calls if url.endswith("/interaction/list.json")]
    assert interaction_calls == [{"rxcui": "11289,1191,5640"}]


def test_terminology_source_without_pairs_reports_no_known_interactions(monkeypatch):
    monkeypatch.delenv("RXGUARD_DISABLE_EXTERNAL_WEB", raising=False)
    calls: list[tuple[str, dict[str, Any]]] = []
    monkeypatch.setattr("rxguard_tools.terminology.httpx.get", _fake_rxnav({}, calls))

    outcome = TerminologySource().check("Warfarin", ["Aspirin"])

    assert outcome.verdict is not None
    assert outcome.verdict.has_conflict is False
    assert outcome.verdict.details == "No known interactions found."


def test_terminology_source_insufficient_data_makes_no_interaction_call(monkeypatch):
    monkeypatch.delenv("RXGUARD_DISABLE_EXTERNAL_WEB", raising=False)
    calls: list[tuple[str, dict[str, Any]]] = []
    monkeypatch.setattr("rxguard_tools.terminology.httpx.get", _fake_rxnav({}, calls))

    outcome = TerminologySource().check("Warfarin", ["Notadrugol"])

    assert outcome.verdict is not None
    assert outcome.verdict.has_conflict is False
    assert outcome.verdict.details == "Insufficient drug data to check."
    assert all(url.endswith("/rxcui.json") for url, _ in calls)


def test_terminology_source_timeout_is_a_failure(monkeypatch):
    monkeypatch.delenv("RXGUARD_DISABLE_EXTERNAL_WEB", raising=False)

    def timing_out_get(url: str, **kwargs):
        raise httpx.ReadTimeout("timed out", request=httpx.Request("GET", url))

    monkeypatch.setattr("rxguard_tools.terminology.httpx.get", timing_out_get)
    outcome = TerminologySource().check("Warfarin", ["Aspirin"])
    assert outcome.status == "failed"
    assert "timed out" in (outcome.reason or "")


def test_terminology_source_invalid_json_is_a_failure(monkeypatch):
    monkeypatch.delenv("RXGUARD_DISABLE_EXTERNAL_WEB", raising=False)
    monkeypatch.setattr(
        "rxguard_tools.terminology.httpx.get",
        lambda url, **kwargs: _FakeResponse(invalid_json=True),
    )
    outcome = TerminologySource().check("Warfarin", ["Aspirin"])
    assert outcome.status == "failed"


def test_terminology_source_is_unavailable_when_external_web_disabled(monkeypatch):
    monkeypatch.setenv("RXGUARD_DISABLE_EXTERNAL_WEB", "true")
    outcome = TerminologySource().check("Warfarin", ["Aspirin"])
    assert outcome.status == "unavailable"


def test_resolve_rxcui_accepts_scalar_id_and_drops_client_errors(monkeypatch):
    responses = {
        "Warfarin": _FakeResponse(json_data={"idGroup": {"rxnormId": "11289"}}),
        "Bogus": _FakeResponse(status_code=400),
    }
    monkeypatch.setattr(
        "rxguard_tools.terminology.httpx.get",
        lambda url, **kwargs: responses[kwargs["params"]["name"]],
    )
    client = RxNavClient()
    assert client.resolve_rxcui("Warfarin") == "11289"
    assert client.resolve_rxcui("Bogus") is None


def test_rxnav_base_url_and_timeout_come_from_env(monkeypatch):
    monkeypatch.setenv("RXNAV_BASE_URL", "https://rxnav.example.test/REST/")
    monkeypatch.setenv("RXGUARD_HTTP_TIMEOUT_SECONDS", "120")
    client = RxNavClient()
    assert client.base_url == "https://rxnav.example.test/REST"
    assert client.timeout == 30.0


def test_flatten_skips_malformed_entries():
    payload = {
        "fullInteractionTypeGroup": [
            {"fullInteractionType": [{"interactionPair": [{"interactionConcept": []}]}, "junk"]},
            None,
        ]
    }
    assert flatten_interaction_pairs(payload) == []
    assert flatten_interaction_pairs(None) == []


def test_summary_truncates_after_five_pairs():
    pairs = [f"drug{i} + other{i}" for i in range(7)]
    summary = summarize_pairs(pairs)
    assert summary.endswith(" ...")
    assert "drug4 + other4" in summary
    assert "drug5 + other5" not in summary
