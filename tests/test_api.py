from fastapi.testclient import TestClient

import backend.app as api
from backend.extraction_client import ExtractionServiceError

client = TestClient(api.app)

LEVEL_OPTIONS = {"level": [{"id": 1, "name": "National"}, {"id": 2, "name": "International"}]}


def test_health_reports_form_count():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "form_types": 26}


def test_form_types_lists_fields():
    resp = client.get("/form-types")
    assert resp.status_code == 200
    by_type = {item["form_type"]: item for item in resp.json()}
    assert {"key": "grantReceived", "kind": "number"} in by_type["financial"]["fields"]


def test_form_type_lookup():
    resp = client.post("/form-type", json={"category": "Talks", "subCategory": "Talks of Academic/Research Nature"})
    assert resp.json() == {"form_type": "talks"}

    resp = client.post("/form-type", json={"category": "Talks", "subCategory": "Podcasts"})
    assert resp.json() == {"form_type": None}


def test_resolve_with_explicit_form_type():
    payload = {
        "form_type": "papers",
        "dataFields": {"Presentation Level": "International", "Title": "Graphs", "Date": "2099-01-01"},
        "current_values": {"title_of_paper": "Existing"},
        "dropdown_options": LEVEL_OPTIONS,
    }
    resp = client.post("/autofill/resolve", json=payload)
    assert resp.status_code == 200
    body = resp.json()
    assert body["form_type"] == "papers"
    assert body["writes"] == {"level": 2}
    assert body["highlighted"] == ["level"]
    assert body["populated_count"] == 1
    assert body["message"] == "Populated 1 field(s) from document analysis."


def test_resolve_overwrite_default_comes_from_env(monkeypatch):
    payload = {"form_type": "papers", "data_fields": {"Title": "Graphs"}, "current_values": {"title_of_paper": "Old"}}

    monkeypatch.setenv("AUTOFILL_OVERWRITE", "true")
    assert client.post("/autofill/resolve", json=payload).json()["writes"] == {"title_of_paper": "Graphs"}

    payload["overwrite"] = False
    assert client.post("/autofill/resolve", json=payload).json()["writes"] == {}


def test_resolve_by_category_and_unresolved():
    payload = {"category": "Research & Consultancy", "subCategory": "PhD Guidance Details",
               "dataFields": {"Year of Completion": "2019"}}
    body = client.post("/autofill/resolve", json=payload).json()
    assert body["form_type"] == "phd"
    assert body["writes"] == {"yearOfCompletion": "2019"}

    payload["subCategory"] = "Gardening"
    body = client.post("/autofill/resolve", json=payload).json()
    assert body == {"form_type": None, "writes": {}, "highlighted": [], "populated_count": 0, "message": None}


def test_resolve_unknown_form_type_is_422():
    resp = client.post("/autofill/resolve", json={"form_type": "spaceships", "dataFields": {}})
    assert resp.status_code == 422


def test_analyze_requires_configured_endpoint(monkeypatch):
    monkeypatch.delenv("EXTRACTION_ENDPOINT", raising=False)
    resp = client.post(
        "/autofill/analyze",
        files={"file": ("a.pdf", b"%PDF", "application/pdf")},
        data={"category": "Talks"},
    )
    assert resp.status_code == 503


def test_analyze_rejects_empty_upload(monkeypatch):
    monkeypatch.setenv("EXTRACTION_ENDPOINT", "http://extractor.local")
    resp = client.post(
        "/autofill/analyze",
        files={"file": ("a.pdf", b"", "application/pdf")},
        data={"category": "Talks"},
    )
    assert resp.status_code == 400


def test_analyze_forwards_and_resolves(monkeypatch):
    monkeypatch.setenv("EXTRACTION_ENDPOINT", "http://extractor.local")
    captured = {}

    def fake_request(endpoint, filename, content, **kwargs):
        captured.update(endpoint=endpoint, filename=filename, content=content, **kwargs)
        return {
            "success": True,
            "category": "Research & Consultancy",
            "subCategory": "E Content",
            "dataFields": {"Link": "https://example.com/mooc", "Title": "Intro to ML"},
        }

    monkeypatch.setattr(api, "request_form_fields", fake_request)
    resp = client.post(
        "/autofill/analyze",
        files={"file": ("course.pdf", b"%PDF-1.4", "application/pdf")},
        data={"category": "Research & Consultancy", "subCategory": "E Content"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["form_type"] == "econtent"
    assert body["writes"] == {"link": "https://example.com/mooc", "title": "Intro to ML"}
    assert captured["endpoint"] == "http://extractor.local"
    assert captured["filename"] == "course.pdf"
    assert captured["subcategory"] == "E Content"


def test_analyze_maps_service_failure_to_502(monkeypatch):
    monkeypatch.setenv("EXTRACTION_ENDPOINT", "http://extractor.local")

    def fake_request(*args, **kwargs):
        raise ExtractionServiceError("model overloaded", status_code=503)

    monkeypatch.setattr(api, "request_form_fields", fake_request)
    resp = client.post(
        "/autofill/analyze",
        files={"file": ("a.pdf", b"%PDF", "application/pdf")},
        data={"category": "Talks"},
    )
    assert resp.status_code == 502
    assert resp.json()["detail"] == "model overloaded"


def test_resolve_survives_huge_exponent_values():
    payload = {"form_type": "financial", "dataFields": {"Grant Received": "1e999999999999999"}}
    resp = client.post("/autofill/resolve", json=payload)
    assert resp.status_code == 200
    assert resp.json()["writes"] == {}
