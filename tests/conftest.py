import json

import fitz
import pytest
from fastapi.testclient import TestClient

import config
import main
import security


@pytest.fixture
def pdf_bytes() -> bytes:
    doc = fitz.open()
    for _ in range(3):
        doc.new_page(width=595, height=842)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def write_config(tmp_path, monkeypatch):
    """Point the agent at a throwaway config.json and return a writer for it."""
    path = tmp_path / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", str(path))

    def write(**values):
        path.write_text(json.dumps(values), encoding="utf-8")
        return path

    return write


@pytest.fixture
def client(write_config, monkeypatch) -> TestClient:
    monkeypatch.setattr(security, "is_local_client", lambda host: True)
    return TestClient(main.app)
