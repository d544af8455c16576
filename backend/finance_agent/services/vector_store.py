"""
Pinecone vector store: nearest-neighbour queries over stored transaction batches.

Each stored vector carries ``metadata.text``: the JSON blob the extractor
parses. This module only moves vectors and metadata; it never interprets them.
"""

import logging
import os
import time
from typing import Any, Optional

from pinecone import Pinecone, ServerlessSpec

from .. import config
from ..schemas import RetrievalHit

logger = logging.getLogger(__name__)


class PineconeVectorStore:
    def __init__(
        self,
        index_name: str = config.PINECONE_INDEX,
        api_key: Optional[str] = None,
        namespace: str = config.PINECONE_NAMESPACE,
        metric: str = "cosine",
    ):
        """
        Args:
            index_name: Name of the Pinecone index
            api_key: Pinecone API key (defaults to PINECONE_API_KEY env var)
            namespace: Namespace the transactions live in
            metric: Distance metric used if the index has to be created
        """
        api_key = api_key or config.PINECONE_API_KEY
        if not api_key:
            raise RuntimeError("Pinecone API key is required (set PINECONE_API_KEY env var)")

        self.index_name = index_name
        self.namespace = namespace
        self.metric = metric
        self.pc = Pinecone(api_key=api_key)
        self._index = None

    @property
    def index(self):
        if self._index is None:
            self._index = self.pc.Index(self.index_name)
            logger.info(f"Connected to Pinecone index: {self.index_name} (namespace={self.namespace})")
        return self._index

    def ensure_index(self, dimension: int) -> None:
        """Create the index if it does not exist yet (used by seeding only)."""
        existing = [idx["name"] for idx in self.pc.list_indexes()]
        if self.index_name in existing:
            return
        logger.info(f"Creating Pinecone index: {self.index_name} (dimension={dimension})")
        self.pc.create_index(
            name=self.index_name,
            dimension=dimension,
            metric=self.metric,
            spec=ServerlessSpec(
                cloud=os.getenv("PINECONE_CLOUD", "aws"),
                region=os.getenv("PINECONE_REGION", "us-east-1"),
            ),
        )
        while not self.pc.describe_index(self.index_name).status["ready"]:
            time.sleep(1)

    def query(self, embedding: list[float], top_k: int) -> list[RetrievalHit]:
        results = self.index.query(
            vector=embedding,
            top_k=top_k,
            namespace=self.namespace,
            include_metadata=True,
        )

        hits: list[RetrievalHit] = []
        for match in getattr(results, "matches", None) or []:
            # Response object format (Pinecone v3+) vs. dict format
            if hasattr(match, "metadata"):
                metadata = dict(match.metadata) if match.metadata else {}
                score = match.score
                match_id = match.id
            else:
                metadata = dict(match.get("metadata") or {})
                score = match.get("score")
                match_id = match.get("id")
            text = metadata.get("text")
            hits.append(
                RetrievalHit(
                    id=str(match_id) if match_id is not None else None,
                    score=float(score) if score is not None else None,
                    text=text if isinstance(text, str) else None,
                )
            )
        return hits

    def upsert(self, vectors: list[tuple[str, list[float], dict[str, Any]]]) -> None:
        self.index.upsert(vectors=vectors, namespace=self.namespace)
