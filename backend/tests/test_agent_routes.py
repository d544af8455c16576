import asyncio

import httpx
import pytest
from conftest import CHART_PARAMS, hit, tx
from fastapi.testclient import TestClient

from finance_agent.main import app
from finance_agent.services.agent import execute_tool, run_agent


def _tool_call(name: str, query: str) -> dict:
    return {"content": "", "tool_calls": [{"function": {"name": name, "arguments": {"query": query}}}]}


class TestRunAgent:
    def test_first_tool_result_returned(self, services, fake_llm, fake_store):
        fake_store.hits = [hit([tx()])]
        fake_llm.chat_replies = [
            _tool_call("finance_tool", "cafe"),
            {"content": "You spent 50 USD on coffee."},
        ]

        result = asyncio.run(run_agent("How much did I spend at the cafe?", services))

        assert result.data["summary"].startswith("Found 1 relevant transactions:")
        assert result.answer == "You spent 50 USD on coffee."
        assert [t.name for t in result.tools_called] == ["finance_tool"]
        tool_msg = fake_llm.chat_calls[1][-1]
        assert tool_msg["role"] == "tool"
        assert tool_msg["content"].startswith('{"summary": "Found 1')

    def test_string_arguments_decoded(self, services, fake_llm, fake_store):
        fake_store.hits = [hit([tx()])]
        fake_llm.structured = dict(CHART_PARAMS)
        fake_llm.chat_replies = [
            {"content": "", "tool_calls": [
                {"function": {"name": "visualize_tool", "arguments": '{"query": "chart food"}'}}
            ]},
            {"content": "Here is your chart."},
        ]

        result = asyncio.run(run_agent("chart my food spending", services))

        assert result.data["type"] == "bar"
        assert result.data["options"]["xAxis"] == "Category"

    def test_no_tool_call(self, services, fake_llm):
        fake_llm.chat_replies = [{"content": "I can only help with finances."}]
        result = asyncio.run(run_agent("what's the weather?", services))
        assert result.data is None
        assert result.tools_called == []

    def test_unknown_tool_reported_to_model(self, services):
        message = asyncio.run(execute_tool("weather_tool", {"query": "rain"}, services))
        assert message.startswith("Unknown tool 'weather_tool'")

    def test_missing_query_argument(self, services):
        message = asyncio.run(execute_tool("finance_tool", {}, services))
        assert "missing required argument" in message


API_TOKEN = "test-token"


@pytest.fixture
def client(services, monkeypatch):
    from finance_agent import config

    monkeypatch.setattr(config, "API_TOKEN", API_TOKEN)
    app.state.services = services
    yield TestClient(app, headers={"Authorization": f"Bearer {API_TOKEN}"})
    app.state.services = None


class TestRoutes:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_visualize(self, client, fake_llm, fake_store):
        fake_store.hits = [hit([tx(date="2024-01-05"), tx(date="2024-01-20")])]
        fake_llm.structured = dict(CHART_PARAMS)

        r = client.post("/visualize", json={"query": "food spending"})

        assert r.status_code == 200
        body = r.json()
        assert body["message"] is None
        chart = body["data"]
        assert set(chart) == {"type", "data", "options"}
        assert chart["data"] == [{"label": "Food", "value": 100.0, "date": "2024-01-20", "synthetic": False}]
        assert chart["options"]["yAxis"] == "Amount (USD)"

    def test_visualize_no_data(self, client, fake_store):
        fake_store.hits = []
        r = client.post("/visualize", json={"query": "food spending"})
        assert r.status_code == 200
        assert r.json() == {"data": None, "message": "No valid transactions found."}

    def test_bad_chart_params_is_502(self, client, fake_llm, fake_store):
        fake_store.hits = [hit([tx()])]
        fake_llm.structured = {"title": "only a title"}
        r = client.post("/visualize", json={"query": "food spending"})
        assert r.status_code == 502

    def test_ollama_down_is_503(self, client, fake_llm, fake_store):
        async def _down(text):
            raise httpx.ConnectError("connection refused")

        fake_llm.embed = _down
        r = client.post("/visualize", json={"query": "food spending"})
        assert r.status_code == 503

    def test_finance_agent(self, client, fake_llm, fake_store):
        fake_store.hits = [hit([tx()])]
        fake_llm.chat_replies = [_tool_call("finance_tool", "cafe"), {"content": "Done."}]

        r = client.post("/finance-agent", json={"query": "cafe spending"})

        assert r.status_code == 200
        body = r.json()
        assert body["data"]["summary"].startswith("Found 1 relevant transactions:")
        assert body["answer"] == "Done."

    def test_empty_query_rejected(self, client):
        assert client.post("/finance-agent", json={"query": ""}).status_code == 422

    def test_services_missing_is_503(self, client):
        app.state.services = None
        assert client.post("/visualize", json={"query": "x"}).status_code == 503


class TestAuth:
    def test_missing_token_rejected(self, client):
        r = client.post("/visualize", json={"query": "x"}, headers={"Authorization": ""})
        assert r.status_code == 401
        assert r.headers["www-authenticate"] == "Bearer"

    def test_wrong_token_rejected(self, client):
        r = client.post("/visualize", json={"query": "x"}, headers={"Authorization": "Bearer nope"})
        assert r.status_code == 401

    def test_scheme_is_case_insensitive(self, client):
        r = client.post(
            "/visualize",
            json={"query": "x"},
            headers={"Authorization": f"bearer {API_TOKEN}"},
        )
        assert r.status_code == 200

    def test_non_loopback_rejected_without_token(self, client, monkeypatch):
        from finance_agent import config

        monkeypatch.setattr(config, "API_TOKEN", None)
        # TestClient reports its peer as host "testclient", which is not loopback.
        r = client.post("/visualize", json={"query": "x"})
        assert r.status_code == 401
        assert "FINANCE_AGENT_API_TOKEN" in r.json()["detail"]

    def test_loopback_allowed_without_token(self, monkeypatch):
        from fastapi import Request

        from finance_agent import config
        from finance_agent.security import require_api_auth

        monkeypatch.setattr(config, "API_TOKEN", None)
        request = Request({"type": "http", "headers": [], "client": ("127.0.0.1", 50000)})
        assert asyncio.run(require_api_auth(request)) is None

    def test_health_is_open(self, client):
        assert client.get("/health", headers={"Authorization": ""}).status_code == 200


def test_llm_ping(client, monkeypatch):
    from finance_agent.services import llm_service

    async def _up():
        return True

    monkeypatch.setattr(llm_service, "ping_ollama", _up)
    assert client.get("/llm/ping").json() == {"available": True}
