from __future__ import annotations

import threading
from typing import Any, Callable

from rxguard_core.extraction import extract_drugs
from rxguard_core.models import SESSION_TEXT_CAP, DocumentSession

from .time_utils import to_iso, utc_now

DrugExtractor = Callable[[str], list[str]]


class SessionStore:
    """Process-wide slot holding the most recently parsed document.

    Writers replace the whole DocumentSession value; readers get the value as it
    was at call time and never observe a partial update.
    """

    def __init__(self, extractor: DrugExtractor = extract_drugs, text_cap: int = SESSION_TEXT_CAP) -> None:
        self._extractor = extractor
        self._text_cap = text_cap
        self._lock = threading.Lock()
        self._current = DocumentSession()

    def upload(self, parsed_text: str | None) -> DocumentSession:
        text = parsed_text or ""
        drugs = tuple(self._extractor(text))
        session = DocumentSession(text=text[: self._text_cap], drugs=drugs, uploaded_at=to_iso(utc_now()))
        with self._lock:
            self._current = session
        return session

    def get(self) -> DocumentSession:
        with self._lock:
            return self._current

    def known_drugs(self) -> list[str]:
        return list(self.get().drugs)

    def status(self) -> dict[str, Any]:
        return self.get().as_status()

    def clear(self) -> None:
        with self._lock:
            self._current = DocumentSession()
