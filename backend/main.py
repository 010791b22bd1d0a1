from __future__ import annotations

import io
import logging
import os
import re
from pathlib import Path
from typing import Any

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from rxguard_core import (
    DocumentParseError,
    InputValidationError,
    InteractionChecker,
    InteractionVerdict,
    PrescriptionDebouncer,
    SpeechListener,
)
from rxguard_core.env import read_float_env, read_int_env
from rxguard_session import SessionStore
from rxguard_tools import default_interaction_sources

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def _bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        repo_root / "backend/.env",
        repo_root / ".env.local",
    ]
    for candidate in candidates:
        if candidate.exists():
            _load_local_env_file(candidate)


_bootstrap_local_env()


_MAX_DOCUMENT_BYTES = read_int_env(
    "RXGUARD_MAX_DOCUMENT_BYTES",
    default=10 * 1024 * 1024,
    minimum=1024,
    maximum=50 * 1024 * 1024,
)
_DEBOUNCE_SECONDS = read_float_env("RXGUARD_DEBOUNCE_SECONDS", default=8.0, minimum=0.5, maximum=300.0)
_PDF_MAGIC = b"%PDF-"
_PDF_READ_ERROR_RE = re.compile(
    r"xref|formaterror|bad\s|password|encrypted|decrypt|invalid|corrupt|malformed|eof marker",
    re.IGNORECASE,
)
_PDF_READ_ERROR_DETAIL = (
    "This PDF could not be read. It may be corrupted, password-protected, or in a format we don't support. "
    "Try a different file or re-save the PDF."
)


class CheckInteractionsRequest(BaseModel):
    newDrug: Any = None


class TranscriptRequest(BaseModel):
    transcript: Any = None


class SpeechErrorRequest(BaseModel):
    error: Any = None


class RxGuardApp:
    def __init__(self) -> None:
        self.session = SessionStore()
        self.checker = InteractionChecker(default_interaction_sources())
        self.debouncer = PrescriptionDebouncer(cooldown_seconds=_DEBOUNCE_SECONDS)
        self.listener = SpeechListener(self.debouncer)

    def check_interactions(self, new_drug: str) -> InteractionVerdict:
        # Snapshot of the slot at call time; a concurrent upload replaces, never mutates.
        known_drugs = self.session.known_drugs()
        return self.checker.check(new_drug, known_drugs)


container = RxGuardApp()
app = FastAPI(title="RxGuard Backend")

allowed_origins = os.getenv("RXGUARD_CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allowed_origins],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InputValidationError)
async def input_validation_error_handler(_request: Request, exc: InputValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _select_upload(primary: UploadFile | None, fallback: UploadFile | None) -> UploadFile:
    upload = primary or fallback
    if upload is None:
        raise InputValidationError("No PDF file provided")
    return upload


async def _read_upload_bytes(upload: UploadFile, *, max_bytes: int, too_large_detail: str) -> bytes:
    raw = await upload.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise HTTPException(status_code=413, detail=too_large_detail)
    if not raw:
        raise InputValidationError("Uploaded file is empty.")
    return raw


def _looks_like_pdf(document_bytes: bytes) -> bool:
    return len(document_bytes) >= len(_PDF_MAGIC) and document_bytes[: len(_PDF_MAGIC)] == _PDF_MAGIC


def _is_pdf_read_error(exc: BaseException) -> bool:
    blob = " ".join(part for part in (type(exc).__name__, str(exc)) if part)
    return bool(_PDF_READ_ERROR_RE.search(blob))


def _extract_text_from_pdf_bytes(pdf_bytes: bytes) -> str:
    try:
        from pypdf import PdfReader

        reader = PdfReader(io.BytesIO(pdf_bytes))
        if getattr(reader, "is_encrypted", False):
            raise DocumentParseError("PDF is encrypted (password protected).", readable=True)
        pages = [page.extract_text() or "" for page in reader.pages]
    except DocumentParseError:
        raise
    except Exception as exc:
        raise DocumentParseError(f"{type(exc).__name__}: {exc}", readable=_is_pdf_read_error(exc)) from exc
    return "\n".join(pages)


def _required_text(value: Any, *, detail: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError(detail)
    return value.strip()


@app.get("/health")
def health():
    return {"ok": True, "service": "rxguard-backend"}


@app.post("/upload-pdf")
async def upload_pdf(
    pdf: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
):
    upload = _select_upload(pdf, file)
    document_bytes = await _read_upload_bytes(
        upload,
        max_bytes=_MAX_DOCUMENT_BYTES,
        too_large_detail=f"PDF exceeds {_MAX_DOCUMENT_BYTES // (1024 * 1024)}MB limit.",
    )
    if not _looks_like_pdf(document_bytes):
        raise HTTPException(status_code=400, detail="File does not look like a valid PDF")

    try:
        text = _extract_text_from_pdf_bytes(document_bytes)
    except DocumentParseError as exc:
        logger.warning("pdf upload parse failure: %s", exc)
        if exc.readable:
            raise HTTPException(status_code=422, detail=_PDF_READ_ERROR_DETAIL) from exc
        raise HTTPException(status_code=500, detail="Failed to parse PDF") from exc

    session = container.session.upload(text)
    logger.info("pdf parsed: %d characters, %d candidate drugs", len(session.text or ""), len(session.drugs))
    return {"ok": True, "drugCount": len(session.drugs), "drugs": list(session.drugs)}


@app.get("/api/pdf-status")
def pdf_status():
    return container.session.status()


@app.post("/check-interactions")
def check_interactions(payload: CheckInteractionsRequest | None = None):
    new_drug = _required_text(payload.newDrug if payload else None, detail="Missing newDrug")
    try:
        verdict = container.check_interactions(new_drug)
    except Exception:
        logger.exception("check-interactions error")
        return JSONResponse(status_code=500, content=InteractionVerdict.neutral().as_payload())
    return verdict.as_payload()


@app.post("/transcript")
def transcript_fragment(payload: TranscriptRequest | None = None):
    text = _required_text(payload.transcript if payload else None, detail="Missing transcript")
    drug = container.listener.handle_fragment(text)
    verdict: dict[str, Any] | None = None
    if drug:
        try:
            verdict = container.check_interactions(drug).as_payload()
        except Exception:
            logger.exception("transcript interaction check error")
            verdict = InteractionVerdict.neutral().as_payload()
    return {"transcript": text, "drug": drug, "fired": drug is not None, "verdict": verdict}


@app.post("/stt/error")
def speech_error(payload: SpeechErrorRequest | None = None):
    container.listener.report_error(payload.error if payload else None)
    return container.listener.status()


@app.get("/stt/status")
def speech_status():
    return container.listener.status()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=os.getenv("RXGUARD_HOST", "127.0.0.1"),
        port=read_int_env("RXGUARD_PORT", default=8000, minimum=1, maximum=65535),
    )
