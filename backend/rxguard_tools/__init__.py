from __future__ import annotations

from rxguard_core.checker import InteractionSource

from .browser_scrape import BrowserInteractionScraper, BrowserScrapeSource
from .terminology import RxNavClient, TerminologyError, TerminologySource


def default_interaction_sources() -> list[InteractionSource]:
    # Priority order: rendered pair pages first, terminology API second.
    return [BrowserScrapeSource(), TerminologySource()]


__all__ = [
    "BrowserInteractionScraper",
    "BrowserScrapeSource",
    "RxNavClient",
    "TerminologyError",
    "TerminologySource",
    "default_interaction_sources",
]
