"""Shared wiring for the two request paths: the service bundle and the retrieval step."""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from fastapi.concurrency import run_in_threadpool

from .. import config
from ..schemas import RetrievalHit, TransactionRecord
from .extractor import extract_records
from .normalizer import parse_date

logger = logging.getLogger(__name__)


class LLMClient(Protocol):
    async def embed(self, text: str) -> list[float]: ...

    async def embed_many(self, texts: list[str]) -> list[list[float]]: ...

    async def chat(self, messages: list[dict], tools: list[dict] | None = None) -> dict: ...

    async def generate_structured(self, prompt: str, schema: dict) -> Any: ...


class VectorStore(Protocol):
    def query(self, embedding: list[float], top_k: int) -> list[RetrievalHit]: ...

    def upsert(self, vectors: list[tuple[str, list[float], dict[str, Any]]]) -> None: ...

    def ensure_index(self, dimension: int) -> None: ...


@dataclass
class FinanceServices:
    """External collaborators for one process; read-only once built."""

    llm: LLMClient
    store: VectorStore
    top_k: int = config.RETRIEVAL_TOP_K
    pad_recurring: bool = config.PAD_RECURRING_CHARTS


def build_services() -> FinanceServices:
    from .llm_service import OllamaClient
    from .vector_store import PineconeVectorStore

    return FinanceServices(llm=OllamaClient(), store=PineconeVectorStore())


async def retrieve_records(query: str, services: FinanceServices) -> list[TransactionRecord]:
    """Embed ``query``, run the similarity search and extract the records.

    Records come back sorted newest first.
    """
    embedding = await services.llm.embed(query)
    # Pinecone's client is synchronous
    hits = await run_in_threadpool(services.store.query, embedding, services.top_k)
    records = extract_records(hits)
    logger.info("Query matched %d hits → %d transactions", len(hits), len(records))
    return sort_newest_first(records)


def sort_newest_first(records: list[TransactionRecord]) -> list[TransactionRecord]:
    return sorted(records, key=lambda r: parse_date(r.date), reverse=True)
