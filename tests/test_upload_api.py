import io
import json

import openpyxl

from qmdash import main

AGENTS_CSV = b"name,team\nAlice,North\nBob,South\nCara,East\n"

QUALITY_REPLY = {
    "reportType": "quality",
    "confidence": 0.8,
    "dateRange": {"start": "2024-01-01", "end": "2024-01-31"},
    "agentsFound": ["Alice"],
    "columns": [{"name": "name", "type": "agent_name", "format": "Free text"}],
    "issues": ["Team column has no header description"],
}


def _upload(client, name, content, path="/upload/analyze", **data):
    return client.post(path, files={"file": (name, content, "application/octet-stream")}, data=data)


def test_analyze_happy_path(client, fake_llm):
    fake_llm.reply = json.dumps(QUALITY_REPLY)
    resp = _upload(client, "agents.csv", AGENTS_CSV)

    assert resp.status_code == 200
    body = resp.json()
    assert body["fileName"] == "agents.csv"
    assert body["rowCount"] == 3
    analysis = body["analysis"]
    assert analysis["reportType"] == "quality"
    assert analysis["confidence"] == 0.8
    assert analysis["dateRange"] == {"start": "2024-01-01", "end": "2024-01-31"}
    assert analysis["agentsFound"] == ["Alice"]
    assert analysis["columnsDetected"][0] == {"name": "name", "type": "agent_name", "format": "Free text"}
    assert analysis["preview"] == [["Alice", "North"], ["Bob", "South"], ["Cara", "East"]]


def test_analyze_degrades_when_model_fails(client, fake_llm):
    fake_llm.error = RuntimeError("503 from provider")
    resp = _upload(client, "agents.csv", AGENTS_CSV)

    assert resp.status_code == 200
    body = resp.json()
    assert body["rowCount"] == 3
    analysis = body["analysis"]
    assert analysis["reportType"] == "unknown"
    assert analysis["confidence"] == 0
    assert analysis["agentsFound"] == []
    assert analysis["dateRange"] == {"start": "", "end": ""}
    assert analysis["columnsDetected"] == [
        {"name": "name", "type": "unknown", "format": "text"},
        {"name": "team", "type": "unknown", "format": "text"},
    ]
    assert len(analysis["issues"]) == 1
    assert len(analysis["preview"]) == 3


def test_analyze_degrades_on_non_json_reply(client, fake_llm):
    fake_llm.reply = "I think this is a quality report."
    resp = _upload(client, "agents.csv", AGENTS_CSV)
    assert resp.status_code == 200
    assert resp.json()["analysis"]["confidence"] == 0


def test_analyze_xlsx(client, fake_llm):
    fake_llm.error = RuntimeError("offline")
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in (["Agent", "AHT"], ["Alice Smith", 301], ["Bob Jones", 288]):
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)

    resp = _upload(client, "aht.xlsx", buf.getvalue())
    assert resp.status_code == 200
    body = resp.json()
    assert body["rowCount"] == 2
    assert body["analysis"]["preview"][0] == ["Alice Smith", 301]


def test_unsupported_type(client, fake_llm):
    resp = _upload(client, "notes.txt", b"hello")
    assert resp.status_code == 400
    assert "Unsupported file type" in resp.json()["error"]
    assert fake_llm.calls == []


def test_missing_file(client):
    resp = client.post("/upload/analyze", data={"note": "no file here"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No file provided"}


def test_text_value_in_file_field(client, fake_llm):
    resp = client.post("/upload/analyze", data={"file": "not a file"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No file provided"}
    assert fake_llm.calls == []


def test_empty_csv(client, fake_llm):
    resp = _upload(client, "blank.csv", b",,\n,,\n")
    assert resp.status_code == 400
    assert fake_llm.calls == []


def test_parse_failure(client):
    resp = _upload(client, "broken.xlsx", b"not a zip")
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Failed to parse file:")


def test_file_too_large(client, monkeypatch):
    monkeypatch.setattr(main.settings.upload, "max_bytes", 10)
    resp = _upload(client, "agents.csv", AGENTS_CSV)
    assert resp.status_code == 400
    assert "too large" in resp.json()["error"]


def test_unexpected_error_is_500(client, monkeypatch):
    async def boom(*args, **kwargs):
        raise KeyError("unexpected")

    monkeypatch.setattr(main, "classify_report", boom)
    resp = _upload(client, "agents.csv", AGENTS_CSV)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to analyze file"}


# ── /upload/process ──


def test_process_quality_report(client, store):
    csv = b"Agent,Date,Quality\nAlice Smith,2024-06-03,91\nUnknown Person,2024-06-03,70\n"
    resp = _upload(client, "quality.csv", csv, path="/upload/process", reportType="quality", dateStart="2024-06-01")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["recordsProcessed"] == 1
    assert body["errors"] == ['Row 3: Could not match agent "Unknown Person"']
    assert store.kpis[(1, "2024-06-03")].quality == 91.0
    assert store.uploads[-1].status == "completed_with_errors"


def test_process_requires_report_type(client):
    resp = _upload(client, "quality.csv", b"Agent,Quality\nA,1\n", path="/upload/process")
    assert resp.status_code == 400
    assert resp.json() == {"error": "File and report type are required"}


def test_process_rejects_unknown_report_type(client):
    resp = _upload(client, "q.csv", b"Agent,Quality\nA,1\n", path="/upload/process", reportType="payroll")
    assert resp.status_code == 400
    assert "Unsupported report type" in resp.json()["error"]


def test_process_without_agent_column(client, store):
    resp = _upload(client, "q.csv", b"Team,Quality\nNorth,90\n", path="/upload/process", reportType="quality")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Could not find agent name column"}
    assert store.uploads == []


def test_process_failure_records_failed_upload(client, store, monkeypatch):
    async def broken_upsert(*args, **kwargs):
        raise ConnectionError("database went away")

    monkeypatch.setattr(store, "upsert_kpi", broken_upsert)
    resp = _upload(client, "q.csv", b"Agent,Quality\nAlice Smith,90\n", path="/upload/process", reportType="quality")

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to process file"}
    assert store.uploads[-1].status == "failed"
    assert "database went away" in store.uploads[-1].errors


def test_health_reports_store(client):
    resp = client.get("/api/health")
    assert resp.json() == {"status": "ok", "store": "memory"}


def test_switch_model(client):
    resp = client.put("/api/settings/model", json={"model": "llama-3.3-70b-versatile"})
    assert resp.json() == {"current_model": "llama-3.3-70b-versatile"}
    assert client.get("/api/settings").json()["current_model"] == "llama-3.3-70b-versatile"
    client.put("/api/settings/model", json={"model": "llama-3.1-8b-instant"})


def test_process_text_value_in_file_field(client, store):
    resp = client.post("/upload/process", data={"file": "not a file", "reportType": "quality"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "File and report type are required"}
    assert store.uploads == []


def test_validation_errors_elsewhere_keep_default_shape(client):
    resp = client.put("/api/settings/model", json={})
    assert resp.status_code == 422
    assert "detail" in resp.json()
