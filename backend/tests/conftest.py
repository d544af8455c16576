"""Shared fakes for the Ollama client and the Pinecone store.

Nothing here talks to the network: embeddings are constant vectors, the
store returns whatever hits a test hands it, and structured/chat replies are
scripted per test.
"""

import json
from typing import Any

import pytest

from finance_agent.schemas import RetrievalHit, TransactionRecord
from finance_agent.services.retrieval import FinanceServices


class FakeLLM:
    def __init__(self) -> None:
        self.structured: Any = None
        self.chat_replies: list[dict] = []
        self.embedded: list[str] = []
        self.prompts: list[str] = []
        self.chat_calls: list[list[dict]] = []
        self.fail_embed_for: set[str] = set()

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_many([text]))[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        for t in texts:
            if any(marker in t for marker in self.fail_embed_for):
                raise ValueError("embedding backend rejected input")
        self.embedded.extend(texts)
        return [[0.1, 0.2, 0.3] for _ in texts]

    async def chat(self, messages: list[dict], tools: list[dict] | None = None) -> dict:
        self.chat_calls.append(list(messages))
        return self.chat_replies.pop(0)

    async def generate_structured(self, prompt: str, schema: dict) -> Any:
        self.prompts.append(prompt)
        if isinstance(self.structured, Exception):
            raise self.structured
        return self.structured


class FakeStore:
    def __init__(self) -> None:
        self.hits: list[RetrievalHit] = []
        self.queries: list[int] = []
        self.upserts: list[tuple[str, list[float], dict]] = []
        self.ensured: list[int] = []

    def query(self, embedding: list[float], top_k: int) -> list[RetrievalHit]:
        self.queries.append(top_k)
        return list(self.hits)

    def upsert(self, vectors: list[tuple[str, list[float], dict]]) -> None:
        self.upserts.extend(vectors)

    def ensure_index(self, dimension: int) -> None:
        self.ensured.append(dimension)


def tx(**fields: Any) -> dict:
    """A complete transaction payload with overridable fields."""
    payload = {
        "date": "2024-01-05",
        "amount": -50,
        "currencyCode": "USD",
        "description": "Cafe",
        "category": "Food",
        "topLevelCategory": "Food & Dining",
        "type": "expense",
    }
    payload.update(fields)
    return {k: v for k, v in payload.items() if v is not None}


def record(**fields: Any) -> TransactionRecord:
    return TransactionRecord.model_validate(tx(**fields))


def hit(transactions: list[dict], score: float | None = 0.9, hit_id: str = "h1") -> RetrievalHit:
    text = json.dumps({"transactions": {f"t{i}": t for i, t in enumerate(transactions)}})
    return RetrievalHit(id=hit_id, score=score, text=text)


CHART_PARAMS = {
    "visualizationType": "bar",
    "dataGrouping": "by_category",
    "filterType": "all",
    "title": "Spending by category",
    "xAxis": "Category",
    "yAxis": "Amount (USD)",
    "colors": ["#4f46e5", "#22c55e"],
}


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def services(fake_llm: FakeLLM, fake_store: FakeStore) -> FinanceServices:
    return FinanceServices(llm=fake_llm, store=fake_store, top_k=200, pad_recurring=False)
