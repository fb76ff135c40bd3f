from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from model_stubs import StubModelClient  # noqa: E402


@pytest.fixture
def records_dir(tmp_path):
    path = tmp_path / "sample-data"
    path.mkdir()
    (path / "patient-001.txt").write_text(
        "Diagnosis: hypertension. Medication: lisinopril 10 mg daily.",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def backend_module(records_dir, monkeypatch):
    monkeypatch.setenv("PATIENT_RECORDS_DIR", str(records_dir))
    # Keep CI deterministic; tests bind a stub client explicitly.
    monkeypatch.setenv("PERPLEXITY_API_KEY", "")
    monkeypatch.delenv("CONTEXT_COMPACTION_ENABLED", raising=False)
    monkeypatch.delenv("MAX_DOCUMENT_TOKENS", raising=False)

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def stub_client(backend_module):
    stub = StubModelClient()
    backend_module.container.bind_client(stub)
    return stub


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client
