from __future__ import annotations

from rxguard_core.extraction import DOCUMENT_RULES, extract_drugs, union_of_rules


def test_extract_drugs_finds_suffix_matches_in_order():
    drugs = extract_drugs("Patient is on Atorvastatin 20mg daily and Lisinopril 10mg.")
    assert drugs == ["Atorvastatin", "Lisinopril"]


def test_extract_drugs_is_deterministic():
    text = "Metoprolol 25 mg twice daily\nAmlodipine 5mg\nOmeprazole before breakfast."
    assert extract_drugs(text) == extract_drugs(text)


def test_extract_drugs_dedupes_case_insensitively_and_keeps_first_casing():
    drugs = extract_drugs("Lisinopril 10mg daily. Continue LISINOPRIL, monitor potassium.")
    assert drugs == ["Lisinopril"]


def test_dosage_context_pass_catches_names_without_known_suffix():
    text = "Current medications:\nWarfarin 5 mg daily\nAspirin 81mg\nTylenol tablets as needed"
    drugs = extract_drugs(text)
    assert drugs == ["Warfarin", "Aspirin", "Tylenol"]


def test_suffix_pass_ranks_before_dosage_context_pass():
    text = "Warfarin 5 mg daily\nAlso started Metformin last week."
    assert extract_drugs(text) == ["Metformin", "Warfarin"]


def test_dosage_context_accepts_hyphenated_names():
    assert extract_drugs("Co-trimoxazole 960 mg twice daily") == ["Co-trimoxazole"]


def test_suffix_match_requires_leading_capital_and_word_boundary():
    drugs = extract_drugs("the dose of metformin was reviewed; Metformin-XR is separate")
    assert drugs == []


def test_suffix_match_accepts_punctuation_boundaries():
    assert extract_drugs("Meds: Amlodipine,Losartan;Sertraline.") == ["Amlodipine", "Losartan"]


def test_extract_drugs_returns_empty_for_empty_or_non_string_input():
    assert extract_drugs("") == []
    assert extract_drugs(None) == []
    assert extract_drugs(b"Metformin 500 mg") == []


def test_union_of_rules_drops_short_candidates():
    assert union_of_rules(DOCUMENT_RULES, "Zi 5 mg daily") == []
