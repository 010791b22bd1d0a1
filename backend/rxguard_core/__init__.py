from .checker import InteractionChecker, InteractionSource, candidate_drugs, first_resolved
from .debounce import PrescriptionDebouncer, thread_timer_scheduler
from .extraction import extract_drugs, extract_from_transcript, has_prescription_intent
from .listener import SpeechListener
from .models import (
    SESSION_TEXT_CAP,
    SOURCE_BROWSER_SCRAPE,
    SOURCE_ERROR,
    SOURCE_TERMINOLOGY_API,
    DocumentParseError,
    DocumentSession,
    InputValidationError,
    InteractionVerdict,
    SourceOutcome,
    SourceUnavailableError,
    drug_key,
)

__all__ = [
    "SESSION_TEXT_CAP",
    "SOURCE_BROWSER_SCRAPE",
    "SOURCE_ERROR",
    "SOURCE_TERMINOLOGY_API",
    "DocumentParseError",
    "DocumentSession",
    "InputValidationError",
    "InteractionChecker",
    "InteractionSource",
    "InteractionVerdict",
    "PrescriptionDebouncer",
    "SourceOutcome",
    "SourceUnavailableError",
    "SpeechListener",
    "candidate_drugs",
    "drug_key",
    "extract_drugs",
    "extract_from_transcript",
    "first_resolved",
    "has_prescription_intent",
    "thread_timer_scheduler",
]
