#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Scenario:
  name: str
  transcript: str
  expect_fired: bool
  expected_drug: str | None = None


def read_json(response: Any) -> dict[str, Any]:
  try:
    body = response.json()
  except Exception:
    return {"raw": response.text[:500]}
  return body if isinstance(body, dict) else {"raw": body}


def fenced_json(value: Any) -> list[str]:
  return ["```json", json.dumps(value, indent=2, ensure_ascii=True), "```"]


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  # Live sources are opt-in; by default the smoke run only exercises local plumbing.
  os.environ.setdefault("RXGUARD_DISABLE_EXTERNAL_WEB", "true")

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)

  pdf_path = (os.getenv("RXGUARD_SMOKE_PDF") or "").strip()

  scenarios = [
    Scenario(
      name="Prescription Intent Fires",
      transcript="I'm going to prescribe Lisinopril ten milligrams daily.",
      expect_fired=True,
      expected_drug="Lisinopril",
    ),
    Scenario(
      name="Repeat Within Cooldown Is Suppressed",
      transcript="So again, I'll prescribe Lisinopril for the blood pressure.",
      expect_fired=False,
    ),
    Scenario(
      name="Different Drug Fires Immediately",
      transcript="We'll add Metformin with breakfast.",
      expect_fired=True,
      expected_drug="Metformin",
    ),
    Scenario(
      name="Small Talk Without Intent",
      transcript="How has the Warfarin been treating you lately?",
      expect_fired=False,
    ),
  ]

  results: list[dict[str, Any]] = []
  upload_result: dict[str, Any] = {"pdf_path": pdf_path or None}

  with TestClient(backend_module.app) as client:
    if pdf_path:
      pdf_bytes = Path(pdf_path).read_bytes()
      upload_response = client.post(
        "/upload-pdf",
        files={"pdf": (Path(pdf_path).name, pdf_bytes, "application/pdf")},
      )
      upload_result["status_code"] = upload_response.status_code
      upload_result["body"] = read_json(upload_response)
    else:
      upload_result["skipped"] = "Set RXGUARD_SMOKE_PDF to include a document upload."
    upload_result["status"] = read_json(client.get("/api/pdf-status"))

    for scenario in scenarios:
      response = client.post("/transcript", json={"transcript": scenario.transcript})
      body = read_json(response)
      scenario_result: dict[str, Any] = {
        "name": scenario.name,
        "status_code": response.status_code,
        "body": body,
      }
      fired = body.get("fired") is True
      drug = body.get("drug")
      verdict = body.get("verdict")

      # A fired detection must carry a verdict from a known source, "error" included.
      scenario_result["pass"] = (
        response.status_code == 200
        and fired == scenario.expect_fired
        and (scenario.expected_drug is None or drug == scenario.expected_drug)
        and (not fired or (isinstance(verdict, dict) and verdict.get("source") in {"browser-scrape", "terminology-api", "error"}))
      )
      if not scenario_result["pass"]:
        scenario_result["error"] = f"Expected fired={scenario.expect_fired} drug={scenario.expected_drug!r}, got fired={fired} drug={drug!r}"
      results.append(scenario_result)

    speech_status = read_json(client.get("/stt/status"))

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Call Assistant E2E Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- RXGUARD_DISABLE_EXTERNAL_WEB: `{os.getenv('RXGUARD_DISABLE_EXTERNAL_WEB')}`",
    f"- Browserbase configured: `{bool(os.getenv('BROWSERBASE_API_KEY') and os.getenv('BROWSERBASE_PROJECT_ID'))}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Document Upload",
    "",
    *fenced_json(upload_result),
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Status code: `{item.get('status_code')}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    report_lines.append("- Response payload:")
    report_lines.extend(fenced_json(item.get("body")))
    report_lines.append("")

  report_lines.extend(["## Speech Status", "", *fenced_json(speech_status)])

  report_path = repo_root / "CALL_E2E_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
