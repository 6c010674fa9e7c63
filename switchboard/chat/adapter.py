"""
ConversationAdapter - the user-facing entry point of the pipeline.

Turns a raw utterance plus stored history into an LLMRequest, drives the
Orchestrator, executes any tool calls the model emits, renders the results,
and records the exchange:

    message + history  →  LLMRequest (system prompt, history, tools, defaults)
                                ↓
                       Orchestrator.process()
                                ↓
         content  ─or─  tool calls → ToolRoutingTable.dispatch() (concurrent)
                                ↓                         ↓
                                ↓              render_tool_results()
                                ↓                         ↓
                     HistoryStore.append(user turn, assistant turn)
                                ↓
            {status, message, conversation_id, timestamp, tool_results?}

Nothing raised inside the pipeline crosses ``process_request``: failures come
back as ``status: "error"`` with a generic apology, and the detail is only
logged.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime
from typing import Any

from switchboard.chat.history import HistoryEntry, HistoryStore
from switchboard.config.logging import get_logger
from switchboard.llm.models import LLMRequest, Message, ToolCall
from switchboard.llm.orchestrator import Orchestrator
from switchboard.tools.formatting import ResultFormatter, render_tool_results
from switchboard.tools.routing import ToolRoutingTable

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."
PROVIDER_ERROR_MESSAGE = (
    "I couldn't get an answer from the language model right now. Please try again in a moment."
)
ASSISTANT_SENDER = "assistant"


def new_conversation_id() -> str:
    return f"conv_{uuid.uuid4().hex}"


class ConversationAdapter:
    """
    Drives one conversational turn end to end.

    Args:
        orchestrator: Provider routing, caching and fallback
        routing: Tool routing table (schemas and dispatch)
        history: Conversation history store
        formatter: Tool result renderer (defaults to the built-in entity tables)
        system_prompt: Prepended as a system message when set
        temperature: Default sampling temperature for requests
        max_tokens: Default completion budget for requests
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        routing: ToolRoutingTable,
        history: HistoryStore,
        formatter: ResultFormatter | None = None,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ):
        self._orchestrator = orchestrator
        self._routing = routing
        self._history = history
        self._formatter = formatter or ResultFormatter()
        self._system_prompt = system_prompt
        self._default_options: dict[str, Any] = {
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    async def build_request(
        self,
        message: str,
        conversation_id: str,
        options: dict[str, Any] | None = None,
    ) -> LLMRequest:
        """Full message list from history plus the new turn, with every tool schema attached."""
        messages: list[Message] = []
        if self._system_prompt:
            messages.append(Message(role="system", content=self._system_prompt))

        for entry in await self._history.read(conversation_id):
            role = "user" if entry.sender == "user" else "assistant"
            messages.append(Message(role=role, content=entry.content))
        messages.append(Message(role="user", content=message))

        return LLMRequest(
            messages=tuple(messages),
            tools=tuple(self._routing.schemas()),
            options={
                **self._default_options,
                **(options or {}),
                "conversation_id": conversation_id,
            },
        )

    async def _run_tool_call(self, call: ToolCall) -> dict[str, Any]:
        try:
            result = await self._routing.dispatch(call)
        except Exception as e:
            logger.warning(f"Tool '{call.name}' failed: {e}")
            return {"tool": call.name, "error": str(e) or type(e).__name__}
        return {"tool": call.name, "result": result}

    async def execute_tool_calls(self, calls: list[ToolCall]) -> list[dict[str, Any]]:
        """Run calls concurrently; results keep the call order and never raise."""
        return list(await asyncio.gather(*(self._run_tool_call(call) for call in calls)))

    async def process_request(
        self,
        message: str,
        conversation_id: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Handle one user utterance.

        Args:
            message: The user's text
            conversation_id: Existing conversation, or None to start a new one
            options: Extra request options (e.g. ``provider``, ``no_cache``)

        Returns:
            ``{status, message, conversation_id, timestamp}`` plus
            ``tool_results`` when the model called tools
        """
        conversation_id = conversation_id or new_conversation_id()

        try:
            request = await self.build_request(message, conversation_id, options)
            response = await self._orchestrator.process(request)

            if response.is_error:
                logger.warning(
                    f"Provider error for conversation {conversation_id} "
                    f"({response.provider}): {response.error_message}"
                )
                return self._reply("error", PROVIDER_ERROR_MESSAGE, conversation_id)

            tool_results: list[dict[str, Any]] | None = None
            if response.has_tool_calls:
                tool_results = await self.execute_tool_calls(response.tool_calls)
                final_message = render_tool_results(tool_results, self._formatter)
                if response.content:
                    final_message = f"{response.content}\n\n{final_message}"
            else:
                final_message = response.content or ""

            await self._history.append(
                conversation_id,
                HistoryEntry(sender="user", content=message),
                HistoryEntry(sender=ASSISTANT_SENDER, content=final_message),
            )
        except Exception as e:
            logger.exception(f"Unexpected error in conversation {conversation_id}: {e}")
            return self._reply("error", GENERIC_ERROR_MESSAGE, conversation_id)

        return self._reply("success", final_message, conversation_id, tool_results)

    @staticmethod
    def _reply(
        status: str,
        message: str,
        conversation_id: str,
        tool_results: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        reply: dict[str, Any] = {
            "status": status,
            "message": message,
            "conversation_id": conversation_id,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if tool_results is not None:
            reply["tool_results"] = tool_results
        return reply

    async def load_history(self, conversation_id: str) -> list[dict[str, str]]:
        """Stored turns as ``{role, content, timestamp}`` dicts."""
        return [
            {
                "role": "user" if entry.sender == "user" else "assistant",
                "content": entry.content,
                "timestamp": entry.timestamp,
            }
            for entry in await self._history.read(conversation_id)
        ]

    async def clear_history(self, conversation_id: str) -> bool:
        return await self._history.clear(conversation_id)
