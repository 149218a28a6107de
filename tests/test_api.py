"""Tests for the HTTP API."""

import csv
import io
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from conftest import FakeProvider, FakeRenderer, RecordingStore, line
from sheetify.api import create_app
from sheetify.config import Config
from sheetify.exceptions import DocumentError, StoreUnavailable
from sheetify.modes import INDEX_LABEL, PAGE_LABEL
from sheetify.sheets import session_key

PDF = {"file": ("script.pdf", b"%PDF-1.4 fake", "application/pdf")}


class DownStore(RecordingStore):
    async def get(self, key: str) -> Optional[str]:
        raise StoreUnavailable("connection refused")


def _client(
    config: Config,
    provider: Optional[FakeProvider] = None,
    store=None,
    renderer_factory=None,
) -> TestClient:
    app = create_app(
        config=config,
        provider=provider or FakeProvider(),
        store=store if store is not None else RecordingStore(),
        renderer_factory=renderer_factory or (lambda data: FakeRenderer(3)),
    )
    return TestClient(app)


def test_health(config: Config):
    with _client(config) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_session_starts_idle(config: Config):
    with _client(config) as client:
        session_id = client.get("/sessions").json()["sessionId"]
        progress = client.get(f"/sessions/{session_id}/progress")

    assert progress.status_code == 200
    assert progress.json() == {
        "stage": "IDLE",
        "cursor": 0,
        "progress": 0,
        "details": [],
    }


def test_unknown_session_progress(config: Config):
    with _client(config) as client:
        response = client.get("/sessions/missing/progress")
    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


def test_run_session_requires_multipart(config: Config):
    with _client(config) as client:
        response = client.post("/sessions/s1", json={"file": "nope"})
    assert response.status_code == 415
    assert response.json() == {"error": "Unsupported Media Type"}


def test_run_session_requires_file_field(config: Config):
    with _client(config) as client:
        response = client.post(
            "/sessions/s1",
            files={"attachment": ("script.pdf", b"%PDF", "application/pdf")},
        )
    assert response.status_code == 400
    assert response.json() == {"error": "No file uploaded"}


def test_run_session_and_download(config: Config):
    provider = FakeProvider({1: [line("A", "first")], 3: [line("C", "third")]})
    with _client(config, provider) as client:
        response = client.post(
            "/sessions/s1",
            params={"startPage": 1, "endPage": 3, "mode": "lines"},
            files=PDF,
        )
        assert response.status_code == 200
        sheet_url = response.json()["sheetUrl"]
        assert sheet_url.endswith("/sessions/s1")

        progress = client.get("/sessions/s1/progress").json()
        csv_response = client.get("/sessions/s1", params={"format": "csv"})
        xlsx_response = client.get("/sessions/s1")

    assert progress["stage"] == "EXTRACTING"
    assert progress["progress"] == 100

    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert (
        csv_response.headers["content-disposition"]
        == 'attachment; filename="script.csv"'
    )
    table = list(csv.reader(io.StringIO(csv_response.text)))
    assert table[0][0] == "الشخصية"
    assert table[0][-2:] == [PAGE_LABEL, INDEX_LABEL]
    assert [r[-2] for r in table[1:]] == ["1", "3"]

    assert xlsx_response.status_code == 200
    workbook = load_workbook(io.BytesIO(xlsx_response.content))
    sheet = workbook.active
    assert sheet.max_row == 3
    assert sheet.cell(row=2, column=2).value == "first"


def test_run_session_defaults_to_names_mode(config: Config, store: RecordingStore):
    with _client(config, store=store) as client:
        response = client.post("/sessions/s1", files=PDF)
        assert response.status_code == 200

    assert store.writes[-1] == session_key("s1")


def test_run_session_failure_keeps_partial_sheet(config: Config):
    provider = FakeProvider({1: [line("A", "a")], 2: RuntimeError("boom")})
    with _client(config, provider) as client:
        response = client.post(
            "/sessions/s1",
            params={"startPage": 1, "endPage": 3, "mode": "lines"},
            files=PDF,
        )
        body = response.json()
        download = client.get("/sessions/s1", params={"format": "csv"})

    assert response.status_code == 500
    assert body["error"] == "An error occurred"
    assert "boom" in body["details"]
    assert body["sheetUrl"].endswith("/sessions/s1")
    assert download.status_code == 200
    assert len(list(csv.reader(io.StringIO(download.text)))) == 2


@pytest.mark.parametrize(
    "params",
    [
        {"startPage": 2, "endPage": 1},
        {"startPage": 1, "endPage": 9},
        {"startPage": 0, "endPage": 1},
    ],
)
def test_run_session_invalid_range(config: Config, params):
    store = RecordingStore()
    with _client(config, store=store) as client:
        response = client.post("/sessions/s1", params=params, files=PDF)
    assert response.status_code == 400
    assert "Invalid page range" in response.json()["error"]
    assert store.writes == []


def test_run_session_invalid_mode(config: Config):
    with _client(config) as client:
        response = client.post("/sessions/s1", params={"mode": "tables"}, files=PDF)
    assert response.status_code == 400


def test_unreadable_pdf(config: Config):
    def broken(data: bytes):
        raise DocumentError("Failed to read PDF")

    with _client(config, renderer_factory=broken) as client:
        response = client.post("/sessions/s1", files=PDF)
    assert response.status_code == 400
    assert response.json() == {"error": "Failed to read PDF"}


def test_download_unknown_session(config: Config):
    with _client(config) as client:
        response = client.get("/sessions/missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Sheet not found"}


def test_download_unknown_format(config: Config):
    with _client(config) as client:
        client.post("/sessions/s1", files=PDF)
        response = client.get("/sessions/s1", params={"format": "ods"})
    assert response.status_code == 400


def test_sheetify_round_trip(config: Config, store: RecordingStore):
    provider = FakeProvider({2: [line("B", "x"), line("B", "y")]})
    with _client(config, provider, store=store) as client:
        response = client.post("/sheetify", files=PDF)
        assert response.status_code == 200
        body = response.json()
        download = client.get(f"/sheetify/{body['sheetId']}")

    assert body["rows"] == 2
    assert body["sheetUrl"].endswith(f"/sheetify/{body['sheetId']}")
    assert store.ttls[f"sheetify/{body['sheetId']}"] == config.batch_ttl
    assert download.status_code == 200
    assert download.text.count("\r\n") == 2


def test_sheetify_unknown_sheet(config: Config):
    with _client(config) as client:
        response = client.get("/sheetify/nope")
    assert response.status_code == 404


def test_store_unavailable(config: Config):
    with _client(config, store=DownStore()) as client:
        response = client.get("/sessions/s1/progress")
    assert response.status_code == 500
    assert response.json()["error"] == "Session store unavailable"


def test_sheetify_job_failure_returns_json(config: Config, store: RecordingStore):
    with _client(config, FakeProvider(fail_uploads=True), store=store) as client:
        response = client.post("/sheetify", files=PDF)

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    body = response.json()
    assert body["error"] == "An error occurred"
    assert "upload refused" in body["details"]


def test_run_session_store_down_mid_job(config: Config):
    class WriteFailStore(RecordingStore):
        async def set(self, key, value, ttl=None):
            raise StoreUnavailable("connection refused")

    with _client(config, store=WriteFailStore()) as client:
        response = client.post("/sessions/s1", files=PDF)

    assert response.status_code == 500
    assert response.json()["error"] == "Session store unavailable"


def test_non_integer_page_is_bad_request(config: Config):
    with _client(config) as client:
        response = client.post("/sessions/s1", params={"startPage": "one"}, files=PDF)

    assert response.status_code == 400
    body = response.json()
    assert set(body) == {"error"}
    assert "startPage" in body["error"]


def test_convert_to_markdown(config: Config):
    provider = FakeProvider(transcripts={2: "## Two"})
    with _client(config, provider) as client:
        response = client.post("/convert-to-markdown", files=PDF)
        ranged = client.post(
            "/convert-to-markdown", params={"startPage": 3, "endPage": 3}, files=PDF
        )

    assert response.status_code == 200
    assert response.json() == {"markdown": ["# Page 1", "## Two", "# Page 3"]}
    assert ranged.json() == {"markdown": ["# Page 3"]}


def test_convert_to_markdown_input_checks(config: Config):
    with _client(config) as client:
        not_multipart = client.post("/convert-to-markdown", json={})
        missing = client.post(
            "/convert-to-markdown",
            files={"attachment": ("script.pdf", b"%PDF", "application/pdf")},
        )
        bad_range = client.post(
            "/convert-to-markdown", params={"startPage": 5}, files=PDF
        )

    assert not_multipart.status_code == 415
    assert missing.status_code == 400
    assert missing.json() == {"error": "No file uploaded"}
    assert bad_range.status_code == 400


def test_convert_to_markdown_job_failure(config: Config):
    with _client(config, FakeProvider(fail_uploads=True)) as client:
        response = client.post("/convert-to-markdown", files=PDF)

    assert response.status_code == 500
    assert response.json()["error"] == "An error occurred"
