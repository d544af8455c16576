"""Agent router: free-text finance questions and direct chart requests."""

from typing import Awaitable, TypeVar

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from pinecone.exceptions import PineconeException

from ..schemas import AgentResponse, QueryRequest, VisualizeEnvelope
from ..security import RequireAPIAuth
from ..services import agent as agent_service
from ..services import llm_service
from ..services.assembler import get_visualization_data
from ..services.chart_params import ChartParameterError
from ..services.retrieval import FinanceServices

router = APIRouter(tags=["agent"], dependencies=[RequireAPIAuth])

T = TypeVar("T")


def get_services(request: Request) -> FinanceServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Finance services are not configured.")
    return services


async def _guarded(call: Awaitable[T]) -> T:
    """Map upstream failures to HTTP errors; the request is aborted either way."""
    try:
        return await call
    except ChartParameterError as exc:
        raise HTTPException(status_code=502, detail=f"Chart parameter selection failed: {exc}") from exc
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=503, detail=f"Ollama unavailable: {exc}") from exc
    except PineconeException as exc:
        raise HTTPException(status_code=503, detail=f"Vector store unavailable: {exc}") from exc


@router.post(
    "/finance-agent",
    response_model=AgentResponse,
    summary="Ask the finance agent; it may summarize or chart transactions",
)
async def finance_agent(body: QueryRequest, services: FinanceServices = Depends(get_services)):
    return await _guarded(agent_service.run_agent(body.query, services))


@router.post(
    "/visualize",
    response_model=VisualizeEnvelope,
    summary="Build chart data for a query without going through the agent",
)
async def visualize(body: QueryRequest, services: FinanceServices = Depends(get_services)):
    result = await _guarded(get_visualization_data(body.query, services))
    return VisualizeEnvelope.from_result(result)


@router.get("/llm/ping", summary="Check Ollama availability")
async def ping_ollama():
    return {"available": await llm_service.ping_ollama()}
