# tests/test_rephrase_api.py
from techtool.api.routes import rephrase as rephrase_routes
from techtool.api.routes.rephrase import RephraseResult
from techtool.core.config import settings


def test_requires_api_key(client, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)

    r = client.post("/rephrase", json={"description": "printer broken"})
    assert r.status_code == 503
    assert "OPENAI_API_KEY" in r.json()["error"]


def test_rephrase_success(client, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    seen = []

    def fake(description):
        seen.append(description)
        return RephraseResult(
            taskName="Fix Office Printer Paper Jam",
            description="Clear the recurring paper jam on the 3rd floor printer.",
            url="",
        )

    monkeypatch.setattr(rephrase_routes, "_rephrase", fake)
    r = client.post("/rephrase", json={"description": "the printer upstairs keeps jamming"})

    assert r.status_code == 200
    assert r.json() == {
        "taskName": "Fix Office Printer Paper Jam",
        "description": "Clear the recurring paper jam on the 3rd floor printer.",
        "url": "",
    }
    assert seen == ["the printer upstairs keeps jamming"]


def test_blank_description(client, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")

    assert client.post("/rephrase", json={"description": "   "}).status_code == 400
    assert client.post("/rephrase", json={}).status_code == 422


def test_model_failure_is_bad_gateway(client, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")

    def boom(description):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(rephrase_routes, "_rephrase", boom)
    r = client.post("/rephrase", json={"description": "x"})
    assert r.status_code == 502
    assert "rate limited" in r.json()["error"]

    monkeypatch.setattr(
        rephrase_routes, "_rephrase", lambda d: RephraseResult(taskName="", description="")
    )
    assert client.post("/rephrase", json={"description": "x"}).status_code == 502
