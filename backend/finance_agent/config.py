"""Runtime configuration: every knob comes from the environment."""

import os


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# ── Ollama ────────────────────────────────────────────────────────────────────

OLLAMA_BASE = os.getenv("OLLAMA_BASE", "http://localhost:11434")
CHAT_MODEL = os.getenv("FINANCE_AGENT_CHAT_MODEL", "llama3.1:latest")
EMBED_MODEL = os.getenv("FINANCE_AGENT_EMBED_MODEL", "nomic-embed-text")
LLM_TIMEOUT = float(os.getenv("FINANCE_AGENT_LLM_TIMEOUT", "120"))

# ── Pinecone ──────────────────────────────────────────────────────────────────

PINECONE_API_KEY = os.getenv("PINECONE_API_KEY")
PINECONE_INDEX = os.getenv("PINECONE_INDEX", "finance-transactions")
PINECONE_NAMESPACE = os.getenv("PINECONE_NAMESPACE", "default")
RETRIEVAL_TOP_K = int(os.getenv("FINANCE_AGENT_TOP_K", "200"))

# ── Pipeline ──────────────────────────────────────────────────────────────────

MIN_RELEVANCE_SCORE = float(os.getenv("FINANCE_AGENT_MIN_SCORE", "0.7"))
SEED_ON_STARTUP = _flag("FINANCE_AGENT_SEED_ON_STARTUP")
# Synthetic padding of sparse "recurring" charts; off unless asked for.
PAD_RECURRING_CHARTS = _flag("FINANCE_AGENT_PAD_RECURRING")

# ── Server ────────────────────────────────────────────────────────────────────

LOG_LEVEL = os.getenv("FINANCE_AGENT_LOG_LEVEL", "INFO").upper()
API_TOKEN = os.getenv("FINANCE_AGENT_API_TOKEN")
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "FINANCE_AGENT_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if o.strip()
]
