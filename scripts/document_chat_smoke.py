#!/usr/bin/env python3
from __future__ import annotations

import importlib
import json
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient


@dataclass
class Scenario:
  name: str
  path: str
  json_body: dict[str, Any] | None = None
  files: dict[str, Any] | None = None
  expect_summarized: bool | None = None
  form: dict[str, str] = field(default_factory=dict)


def long_history(turns: int, chars: int) -> list[dict[str, str]]:
  history: list[dict[str, str]] = []
  for index in range(turns):
    role = "user" if index % 2 == 0 else "assistant"
    line = f"Turn {index}: discussing glucose log readings and medication timing. "
    history.append({"role": role, "content": (line * (chars // len(line) + 1))[:chars]})
  return history


def run() -> int:
  repo_root = Path(__file__).resolve().parents[1]
  backend_dir = repo_root / "backend"
  if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

  backend_module = importlib.import_module("main")
  backend_module = importlib.reload(backend_module)
  if not getattr(backend_module.container.client, "configured", False):
    print("PERPLEXITY_API_KEY is not set; smoke run needs a live provider.")
    return 2

  record_key = os.getenv("SMOKE_RECORD_KEY", "patient-001")
  patient_context = backend_module.container.records.lookup(record_key)

  scenarios = [
    Scenario(
      name="Record Lookup Summary",
      path="/api/search",
      json_body={"searchTerm": record_key},
    ),
    Scenario(
      name="Upload Analysis",
      path="/api/files",
      files={"file": (f"{record_key}.txt", patient_context.encode("utf-8"), "text/plain")},
    ),
    Scenario(
      name="Chat Short History",
      path="/api/chat",
      json_body={
        "message": "What medications is the patient on?",
        "patientContext": patient_context,
        "chatHistory": long_history(4, 120),
      },
      expect_summarized=False,
    ),
    Scenario(
      name="Chat Long History Compaction",
      path="/api/chat",
      json_body={
        "message": "Summarize what we decided about the HbA1c plan.",
        "patientContext": patient_context,
        "chatHistory": long_history(40, 1000),
      },
      expect_summarized=True,
    ),
  ]

  results: list[dict[str, Any]] = []

  with TestClient(backend_module.app) as client:
    for scenario in scenarios:
      if scenario.files is not None:
        response = client.post(scenario.path, files=scenario.files, data=scenario.form)
      else:
        response = client.post(scenario.path, json=scenario.json_body)

      scenario_result: dict[str, Any] = {
        "name": scenario.name,
        "path": scenario.path,
        "status_code": response.status_code,
      }
      try:
        body = response.json()
      except ValueError:
        body = {"raw": response.text[:500]}

      if response.status_code != 200:
        scenario_result["pass"] = False
        scenario_result["error"] = f"{scenario.path} returned {response.status_code}: {body}"
        results.append(scenario_result)
        continue

      metadata = body.get("metadata") or {}
      scenario_result["content_preview"] = str(body.get("content") or "")[:240]
      scenario_result["usage"] = body.get("usage")
      scenario_result["metadata"] = metadata
      scenario_result["pass"] = bool(body.get("content"))
      if scenario.expect_summarized is not None and metadata.get("summarized") is not scenario.expect_summarized:
        scenario_result["pass"] = False
        scenario_result["error"] = f"Expected summarized={scenario.expect_summarized}, got {metadata.get('summarized')!r}"
      results.append(scenario_result)

  passed = sum(1 for item in results if item.get("pass"))
  failed = len(results) - passed
  timestamp = datetime.now(timezone.utc).isoformat()

  report_lines = [
    "# Document Chat Smoke Report",
    "",
    f"- Timestamp (UTC): `{timestamp}`",
    f"- Model: `{os.getenv('PERPLEXITY_MODEL') or 'sonar-pro'}`",
    f"- Record key: `{record_key}`",
    f"- Records directory: `{backend_module.container.records.root}`",
    f"- Total scenarios: `{len(results)}`",
    f"- Passed: `{passed}`",
    f"- Failed: `{failed}`",
    "",
    "## Scenario Results",
    "",
  ]

  for item in results:
    status = "PASS" if item.get("pass") else "FAIL"
    report_lines.append(f"### {status} - {item['name']}")
    report_lines.append(f"- Route: `{item.get('path')}`")
    report_lines.append(f"- Status code: `{item.get('status_code')}`")
    if item.get("error"):
      report_lines.append(f"- Error: `{item['error']}`")
    preview = item.get("content_preview") or ""
    if preview:
      report_lines.append(f"- Content preview: `{preview}`")
    report_lines.append("- Usage and metadata:")
    report_lines.append("```json")
    report_lines.append(
      json.dumps({"usage": item.get("usage"), "metadata": item.get("metadata")}, indent=2, ensure_ascii=True)
    )
    report_lines.append("```")
    report_lines.append("")

  report_path = repo_root / "DOCUMENT_CHAT_SMOKE_REPORT.md"
  report_path.write_text("\n".join(report_lines), encoding="utf-8")
  print(f"Wrote report: {report_path}")
  print(f"Passed {passed}/{len(results)} scenarios.")

  return 0 if failed == 0 else 1


if __name__ == "__main__":
  raise SystemExit(run())
