from __future__ import annotations

import logging
from typing import Any, Callable

from .debounce import PrescriptionDebouncer
from .extraction import extract_from_transcript

logger = logging.getLogger(__name__)

_TRANSCRIPT_DISPLAY_CHARS = 80
_IGNORED_ERRORS = {"aborted"}
_ERROR_MESSAGES = {"not-allowed": "Microphone access denied"}

PrescriptionCallback = Callable[[str], None]


class SpeechListener:
    """Turns pushed transcript fragments into debounced prescription detections.

    Capture errors are kept as advisory state for the UI and never reach the
    interaction checker.
    """

    def __init__(
        self,
        debouncer: PrescriptionDebouncer,
        on_prescription_detected: PrescriptionCallback | None = None,
    ) -> None:
        self.debouncer = debouncer
        self._callbacks: list[PrescriptionCallback] = []
        if on_prescription_detected is not None:
            self._callbacks.append(on_prescription_detected)
        self.last_transcript = ""
        self.error: str | None = None

    def subscribe(self, callback: PrescriptionCallback) -> None:
        self._callbacks.append(callback)

    def handle_fragment(self, fragment: Any) -> str | None:
        text = fragment.strip() if isinstance(fragment, str) else ""
        if not text:
            return None
        self.last_transcript = text
        drug = extract_from_transcript(text)
        if not drug:
            return None
        if not self.debouncer.offer(drug):
            logger.debug("prescription detection suppressed during cooldown: %s", drug)
            return None
        logger.info("prescription detected in transcript: %s", drug)
        for callback in list(self._callbacks):
            callback(drug)
        return drug

    def report_error(self, code: Any) -> str | None:
        normalized = str(code or "").strip()
        if not normalized or normalized in _IGNORED_ERRORS:
            return self.error
        self.error = _ERROR_MESSAGES.get(normalized, f"STT: {normalized}")
        logger.warning("speech capture error reported: %s", normalized)
        return self.error

    def clear_error(self) -> None:
        self.error = None

    def status(self) -> dict[str, Any]:
        return {
            "lastTranscript": self.last_transcript[-_TRANSCRIPT_DISPLAY_CHARS:],
            "error": self.error,
            "coolingDown": self.debouncer.cooling_down,
        }
