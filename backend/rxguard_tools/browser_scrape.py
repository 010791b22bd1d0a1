from __future__ import annotations

import ipaddress
import os
import re
import socket
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Sequence
from urllib.parse import urlparse

import httpx

from rxguard_core.checker import candidate_drugs
from rxguard_core.env import read_bool_env, read_int_env
from rxguard_core.models import SOURCE_BROWSER_SCRAPE, InteractionVerdict, SourceOutcome, SourceUnavailableError

_MAX_SCRAPE_DRUGS = 5
_MAX_DETAIL_PAIRS = 3
_SNIPPET_CHARS = 400
_CONFLICT_RE = re.compile(r"interaction|interact|contraindicated|moderate|major", re.IGNORECASE)
NO_INTERACTIONS_DETAILS = "No interactions found (drugs.com)."

PageFetcher = Callable[[str], str]


def drug_slug(name: str) -> str:
    return re.sub(r"\s+", "-", (name or "").strip().lower())


def page_snippet(body: str) -> str:
    return re.sub(r"\s+", " ", (body or "")[:_SNIPPET_CHARS]).strip()


class BrowserInteractionScraper:
    """Renders drug-pair interaction pages in a remote Browserbase browser."""

    def __init__(self) -> None:
        self.api_key = (os.getenv("BROWSERBASE_API_KEY") or "").strip()
        self.project_id = (os.getenv("BROWSERBASE_PROJECT_ID") or "").strip()
        self.api_url = (os.getenv("RXGUARD_BROWSERBASE_API_URL") or "https://api.browserbase.com/v1").strip().rstrip("/")
        self.page_base = (
            os.getenv("RXGUARD_INTERACTION_PAGE_BASE") or "https://www.drugs.com/drug_interactions"
        ).strip().rstrip("/")
        self.disable_external = read_bool_env("RXGUARD_DISABLE_EXTERNAL_WEB")
        self.timeout_ms = read_int_env("RXGUARD_BROWSER_TIMEOUT_MS", default=10000, minimum=1000, maximum=60000)
        self.settle_ms = read_int_env("RXGUARD_BROWSER_SETTLE_MS", default=1500, minimum=0, maximum=10000)

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.project_id)

    def pair_url(self, first: str, second: str) -> str:
        return f"{self.page_base}/{drug_slug(first)}-with-{drug_slug(second)}.html"

    @contextmanager
    def browse(self) -> Iterator[PageFetcher]:
        if self._normalize_url(self.page_base) is None:
            raise SourceUnavailableError("Interaction page base URL is not an allowed public https URL.")
        try:
            from playwright.sync_api import sync_playwright
        except Exception as exc:
            raise SourceUnavailableError(
                "Playwright is not available. Install browser automation dependencies."
            ) from exc

        connect_url = self._create_remote_session()
        browser = None
        page = None
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.connect_over_cdp(connect_url, timeout=self.timeout_ms)
                context = browser.contexts[0] if browser.contexts else browser.new_context()
                page = context.pages[0] if context.pages else context.new_page()
                page.set_default_timeout(self.timeout_ms)
                page.set_default_navigation_timeout(self.timeout_ms)
                self._arm_dialog_handler(page)

                def fetch(url: str) -> str:
                    page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    if self.settle_ms:
                        page.wait_for_timeout(self.settle_ms)
                    return str(page.evaluate("() => document.body ? document.body.innerText : ''") or "")

                yield fetch
        finally:
            try:
                if page is not None:
                    page.close()
            except Exception:
                pass
            try:
                if browser is not None:
                    browser.close()
            except Exception:
                pass

    def _create_remote_session(self) -> str:
        try:
            response = httpx.post(
                f"{self.api_url}/sessions",
                headers={"X-BB-API-Key": self.api_key, "Content-Type": "application/json"},
                json={"projectId": self.project_id},
                timeout=self.timeout_ms / 1000.0,
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceUnavailableError(f"Browser session could not be created: {exc}") from exc
        connect_url = str((payload or {}).get("connectUrl") or "").strip() if isinstance(payload, dict) else ""
        if not connect_url:
            raise SourceUnavailableError("Browser session response did not include a connect URL.")
        return connect_url

    @staticmethod
    def _arm_dialog_handler(page: Any) -> None:
        try:
            page.on("dialog", lambda dialog: dialog.dismiss())
        except Exception:
            pass

    @staticmethod
    def _normalize_url(raw_url: str) -> str | None:
        value = str(raw_url or "").strip()
        if not value.startswith("https://"):
            return None
        parsed = urlparse(value)
        host = (parsed.hostname or "").strip().lower()
        if not host:
            return None
        if host in {"localhost", "localhost.localdomain"} or host.endswith(".local"):
            return None

        def _blocked_ip(ip: Any) -> bool:
            return bool(
                ip.is_private
                or ip.is_loopback
                or ip.is_link_local
                or ip.is_multicast
                or ip.is_reserved
                or ip.is_unspecified
            )

        try:
            parsed_ip = ipaddress.ip_address(host)
            if _blocked_ip(parsed_ip):
                return None
        except ValueError:
            try:
                resolved = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
            except socket.gaierror:
                allow_unresolved = read_bool_env("RXGUARD_BROWSER_ALLOW_UNRESOLVED_HOSTS")
                if allow_unresolved and "." in host:
                    return value
                return None
            for entry in resolved:
                try:
                    resolved_ip = ipaddress.ip_address(entry[4][0])
                except Exception:
                    continue
                if _blocked_ip(resolved_ip):
                    return None
        return value


class BrowserScrapeSource:
    name = SOURCE_BROWSER_SCRAPE

    def __init__(self, scraper: BrowserInteractionScraper | None = None) -> None:
        self.scraper = scraper or BrowserInteractionScraper()

    def check(self, new_drug: str, known_drugs: Sequence[str]) -> SourceOutcome:
        if not self.scraper.configured:
            return SourceOutcome.unavailable("scrape credentials are not configured")
        if self.scraper.disable_external:
            return SourceOutcome.unavailable("external web access is disabled")

        names = candidate_drugs(new_drug, known_drugs)[:_MAX_SCRAPE_DRUGS]
        pairs = [(names[i], names[j]) for i in range(len(names)) for j in range(i + 1, len(names))]
        matches: list[str] = []
        if pairs:
            try:
                with self.scraper.browse() as fetch:
                    for first, second in pairs:
                        body = fetch(self.scraper.pair_url(first, second))
                        if _CONFLICT_RE.search(body):
                            matches.append(f"{first} + {second}: {page_snippet(body)}")
            except Exception as exc:
                # Any scrape-path failure hands over to the next source.
                return SourceOutcome.unavailable(f"browser scrape failed: {type(exc).__name__}: {exc}")

        details = " | ".join(matches[:_MAX_DETAIL_PAIRS]) if matches else NO_INTERACTIONS_DETAILS
        verdict = InteractionVerdict(has_conflict=bool(matches), details=details, source=self.name)
        return SourceOutcome.resolved(verdict, pair_count=len(pairs), matched=len(matches))
