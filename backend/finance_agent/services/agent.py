"""
Finance agent: Ollama tool-calling loop over the summary and visualization tools.

The model decides which tool to call; each tool takes only ``{query}``.
Tool results are fed back as role='tool' messages until the model answers
without calling a tool, or MAX_TOOL_ITERATIONS is reached.
"""

import json
import logging
from typing import Any

from ..schemas import AgentResponse, ToolCallSummary, VisualizationResponse
from .assembler import get_visualization_data
from .retrieval import FinanceServices
from .summary import get_finance_data

logger = logging.getLogger(__name__)

MAX_TOOL_ITERATIONS = 6

SYSTEM_PROMPT = (
    "You are a financial AI assistant that helps users understand their transactions "
    "and finances.\n\n"
    "USE TOOLS when you need:\n"
    "  • Transaction details or answers about spending/income → finance_tool\n"
    "  • A chart, graph or any visual representation        → visualize_tool\n\n"
    "RULES:\n"
    "  1. You cannot generate images; always use visualize_tool for charts.\n"
    "  2. Provide specific, data-driven answers based only on tool results.\n"
    "  3. Keep answers brief and concise.\n"
    "  4. If the user tries to discuss non-financial topics, politely redirect "
    "the conversation back to financial matters."
)

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "finance_tool",
            "description": (
                "Look up the user's transactions relevant to a question and return a "
                "plain-text summary (date, amount, description, category, type)."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The query to search for"},
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "visualize_tool",
            "description": (
                "Create chart data (type, labelled values, axis titles, colors) for the "
                "user's financial data. Use whenever the user wants to visualize, plot, "
                "chart or display their finances."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The query to visualize"},
                },
                "required": ["query"],
            },
        },
    },
]


async def execute_tool(name: str, arguments: dict, services: FinanceServices) -> Any:
    """Route a tool call by name.

    Returns the tool's result object, or an error string the model can read.
    Request-level failures (Ollama, Pinecone, chart parameters) propagate.
    """
    query = arguments.get("query")
    if not isinstance(query, str) or not query.strip():
        return f"Tool '{name}' called with missing required argument: 'query'"
    if name == "finance_tool":
        return await get_finance_data(query, services)
    if name == "visualize_tool":
        return await get_visualization_data(query, services)
    return f"Unknown tool '{name}'. Available: finance_tool, visualize_tool."


def _tool_result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result.model_dump(by_alias=True, exclude_none=True))


def _result_data(result: Any) -> Any:
    """Caller-facing shape: chart results are returned as the bare chart payload."""
    if isinstance(result, VisualizationResponse):
        if result.chart is not None:
            return result.chart.model_dump(by_alias=True)
        return {"message": result.message}
    return result.model_dump(by_alias=True, exclude_none=True)


async def run_agent(query: str, services: FinanceServices) -> AgentResponse:
    messages: list[dict] = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": query},
    ]
    tools_called: list[ToolCallSummary] = []
    first_result: Any = None
    final_text = ""

    for _iteration in range(MAX_TOOL_ITERATIONS):
        msg = await services.llm.chat(messages, tools=TOOLS)
        tool_calls: list[dict] = msg.get("tool_calls") or []

        if not tool_calls:
            final_text = msg.get("content", "")
            break

        messages.append({
            "role": "assistant",
            "content": msg.get("content", ""),
            "tool_calls": tool_calls,
        })

        for tc in tool_calls:
            fn = tc.get("function", {})
            name: str = fn.get("name", "")
            # Ollama returns arguments as a pre-parsed dict (not a JSON string)
            args = fn.get("arguments", {})
            if isinstance(args, str):
                try:
                    args = json.loads(args)
                except json.JSONDecodeError:
                    args = {}
            if not isinstance(args, dict):
                args = {}

            result = await execute_tool(name, args, services)
            result_text = _tool_result_text(result)
            if first_result is None and not isinstance(result, str):
                first_result = _result_data(result)

            tools_called.append(ToolCallSummary(
                id=len(tools_called),
                name=name,
                summary=result_text.split("\n")[0].strip()[:200],
            ))
            messages.append({"role": "tool", "content": result_text})
    else:
        logger.warning("Agent hit MAX_TOOL_ITERATIONS=%d without a final answer", MAX_TOOL_ITERATIONS)

    return AgentResponse(data=first_result, answer=final_text, tools_called=tools_called)
