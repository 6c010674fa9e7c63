"""
Unit tests for the ConversationAdapter.

Tests cover:
- Request construction (history replay, system prompt, tools, defaults)
- Conversation id handling and history persistence
- Tool-call execution, aggregation and partial failure
- Error responses and the never-raise boundary
- The end-to-end "list all active memberships" flow
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from switchboard.chat.adapter import GENERIC_ERROR_MESSAGE, ConversationAdapter
from switchboard.chat.history import HistoryEntry, InMemoryHistoryStore
from switchboard.llm.cache import ResponseCache
from switchboard.llm.models import LLMResponse, ToolCall
from switchboard.llm.orchestrator import Orchestrator
from switchboard.llm.registry import LegacyConfigResolver, ProviderRegistry
from switchboard.storage.cache_backends import MemoryCacheBackend
from switchboard.tools.base import OperationTool, ToolRegistry
from switchboard.tools.routing import ToolRoutingTable


# ---------------------------------------------------------------------------
# Test tools
# ---------------------------------------------------------------------------

class MemberPressTool(OperationTool):
    name = "memberpress"
    description = "Membership management"
    valid_operations = ("list_memberships", "get_membership")

    async def run(self, operation, arguments):
        if operation == "get_membership":
            raise RuntimeError("membership 99 not found")
        return {
            "status": "success",
            "data": {
                "memberships": [
                    {"id": 1, "title": "Gold", "status": "active"},
                    {"id": 2, "title": "Silver", "status": "active"},
                ],
                "page": 1,
                "per_page": 20,
                "total_pages": 1,
            },
        }


class SiteTool(OperationTool):
    name = "wordpress"
    description = "Site operations"
    yields_to_domain_tools = True
    valid_operations = ("get_option", "memberpress_list_memberships")

    async def run(self, operation, arguments):
        await asyncio.sleep(0.01)
        return {"status": "success", "message": f"{arguments.get('option_name')} = Demo Site"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def routing():
    return ToolRoutingTable.build(ToolRegistry([SiteTool(), MemberPressTool()]))


@pytest.fixture
def history():
    return InMemoryHistoryStore()


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.process = AsyncMock(return_value=LLMResponse(provider="openai", content="Hello!"))
    return orchestrator


@pytest.fixture
def adapter(orchestrator, routing, history):
    return ConversationAdapter(
        orchestrator,
        routing,
        history,
        system_prompt="You are a site assistant.",
        temperature=0.3,
        max_tokens=512,
    )


def _sent_request(orchestrator):
    return orchestrator.process.call_args.args[0]


class TestRequestConstruction:

    @pytest.mark.asyncio
    async def test_new_conversation_request(self, adapter, orchestrator):
        await adapter.process_request("Hi there", conversation_id="conv_1")

        req = _sent_request(orchestrator)
        assert [(m.role, m.content) for m in req.messages] == [
            ("system", "You are a site assistant."),
            ("user", "Hi there"),
        ]

    @pytest.mark.asyncio
    async def test_history_replayed_before_new_turn(self, adapter, orchestrator, history):
        await history.append(
            "conv_1",
            HistoryEntry(sender="user", content="first question"),
            HistoryEntry(sender="assistant", content="first answer"),
        )

        await adapter.process_request("second question", conversation_id="conv_1")

        req = _sent_request(orchestrator)
        assert [(m.role, m.content) for m in req.messages[1:]] == [
            ("user", "first question"),
            ("assistant", "first answer"),
            ("user", "second question"),
        ]

    @pytest.mark.asyncio
    async def test_non_user_senders_become_assistant(self, adapter, orchestrator, history):
        await history.append("conv_1", HistoryEntry(sender="bot", content="legacy reply"))

        await adapter.process_request("hi", conversation_id="conv_1")

        assert _sent_request(orchestrator).messages[1].role == "assistant"

    @pytest.mark.asyncio
    async def test_all_tool_schemas_attached(self, adapter, orchestrator, routing):
        await adapter.process_request("hi")

        req = _sent_request(orchestrator)
        assert [t.name for t in req.tools] == routing.names()
        assert "wordpress_memberpress_list_memberships" not in routing.names()

    @pytest.mark.asyncio
    async def test_default_options(self, adapter, orchestrator):
        await adapter.process_request("hi", conversation_id="conv_1")

        options = _sent_request(orchestrator).options
        assert options["temperature"] == 0.3
        assert options["max_tokens"] == 512
        assert options["conversation_id"] == "conv_1"

    @pytest.mark.asyncio
    async def test_caller_options_override_defaults(self, adapter, orchestrator):
        await adapter.process_request("hi", options={"temperature": 0.9, "provider": "anthropic"})

        options = _sent_request(orchestrator).options
        assert options["temperature"] == 0.9
        assert options["provider"] == "anthropic"

    @pytest.mark.asyncio
    async def test_no_system_prompt(self, orchestrator, routing, history):
        adapter = ConversationAdapter(orchestrator, routing, history)
        await adapter.process_request("hi")

        assert _sent_request(orchestrator).messages[0].role == "user"


class TestConversationFlow:

    @pytest.mark.asyncio
    async def test_success_reply_shape(self, adapter):
        reply = await adapter.process_request("Hi")

        assert reply["status"] == "success"
        assert reply["message"] == "Hello!"
        assert reply["conversation_id"].startswith("conv_")
        assert "timestamp" in reply
        assert "tool_results" not in reply

    @pytest.mark.asyncio
    async def test_fresh_ids_are_unique(self, adapter):
        first = await adapter.process_request("a")
        second = await adapter.process_request("b")
        assert first["conversation_id"] != second["conversation_id"]

    @pytest.mark.asyncio
    async def test_two_turns_append_four_entries(self, adapter, history):
        first = await adapter.process_request("one")
        conversation_id = first["conversation_id"]
        await adapter.process_request("two", conversation_id=conversation_id)

        entries = await history.read(conversation_id)
        assert [(e.sender, e.content) for e in entries] == [
            ("user", "one"),
            ("assistant", "Hello!"),
            ("user", "two"),
            ("assistant", "Hello!"),
        ]

    @pytest.mark.asyncio
    async def test_load_and_clear_history(self, adapter):
        reply = await adapter.process_request("one")
        conversation_id = reply["conversation_id"]

        loaded = await adapter.load_history(conversation_id)
        assert [(m["role"], m["content"]) for m in loaded] == [("user", "one"), ("assistant", "Hello!")]
        assert all("timestamp" in m for m in loaded)

        assert await adapter.clear_history(conversation_id) is True
        assert await adapter.load_history(conversation_id) == []


class TestToolCalls:

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successful_result(self, adapter, orchestrator):
        orchestrator.process.return_value = LLMResponse(
            provider="openai",
            tool_calls=[
                ToolCall(id="1", name="memberpress_list_memberships", arguments={"operation": "list_memberships"}),
                ToolCall(id="2", name="memberpress_get_membership", arguments={"membership_id": 99}),
            ],
        )

        reply = await adapter.process_request("Show memberships and membership 99")

        assert reply["status"] == "success"
        assert "**memberpress_list_memberships**" in reply["message"]
        assert "### Memberships" in reply["message"]
        assert "**memberpress_get_membership**\nError: membership 99 not found" in reply["message"]
        assert [r["tool"] for r in reply["tool_results"]] == [
            "memberpress_list_memberships",
            "memberpress_get_membership",
        ]
        assert reply["tool_results"][1]["error"] == "membership 99 not found"

    @pytest.mark.asyncio
    async def test_results_keep_call_order(self, adapter, orchestrator):
        # The site tool sleeps, so it finishes after the membership tool
        orchestrator.process.return_value = LLMResponse(
            provider="openai",
            tool_calls=[
                ToolCall(name="wordpress_get_option", arguments={"option_name": "blogname"}),
                ToolCall(name="memberpress_list_memberships"),
            ],
        )

        reply = await adapter.process_request("Site name and memberships?")

        message = reply["message"]
        assert message.index("**wordpress_get_option**") < message.index("**memberpress_list_memberships**")
        assert "blogname = Demo Site" in message

    @pytest.mark.asyncio
    async def test_unknown_tool_recorded_as_error(self, adapter, orchestrator):
        orchestrator.process.return_value = LLMResponse(
            provider="openai",
            tool_calls=[ToolCall(name="drop_database")],
        )

        reply = await adapter.process_request("Do something odd")

        assert reply["status"] == "success"
        assert reply["tool_results"] == [{"tool": "drop_database", "error": "Unknown tool: drop_database"}]

    @pytest.mark.asyncio
    async def test_model_text_precedes_tool_output(self, adapter, orchestrator):
        orchestrator.process.return_value = LLMResponse(
            provider="openai",
            content="Here you go:",
            tool_calls=[ToolCall(name="memberpress_list_memberships")],
        )

        reply = await adapter.process_request("memberships?")

        assert reply["message"].startswith("Here you go:\n\n**memberpress_list_memberships**")

    @pytest.mark.asyncio
    async def test_rendered_message_persisted(self, adapter, orchestrator, history):
        orchestrator.process.return_value = LLMResponse(
            provider="openai",
            tool_calls=[ToolCall(name="memberpress_list_memberships")],
        )

        reply = await adapter.process_request("memberships?")

        entries = await history.read(reply["conversation_id"])
        assert entries[1].content == reply["message"]


class TestErrors:

    @pytest.mark.asyncio
    async def test_provider_error_response(self, adapter, orchestrator, history):
        orchestrator.process.return_value = LLMResponse.from_error(
            RuntimeError("401 invalid x-api-key sk-secret"), "anthropic"
        )

        reply = await adapter.process_request("hi", conversation_id="conv_1")

        assert reply["status"] == "error"
        assert "sk-secret" not in reply["message"]
        assert reply["conversation_id"] == "conv_1"
        assert await history.read("conv_1") == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_generic_error(self, adapter, orchestrator):
        orchestrator.process.side_effect = RuntimeError("internal detail /var/www/secret.php")

        reply = await adapter.process_request("hi")

        assert reply["status"] == "error"
        assert reply["message"] == GENERIC_ERROR_MESSAGE
        assert "debug_message" not in reply

    @pytest.mark.asyncio
    async def test_history_failure_contained(self, orchestrator, routing):
        history = MagicMock()
        history.read = AsyncMock(return_value=[])
        history.append = AsyncMock(side_effect=OSError("disk full"))
        adapter = ConversationAdapter(orchestrator, routing, history)

        reply = await adapter.process_request("hi")

        assert reply["status"] == "error"
        assert reply["message"] == GENERIC_ERROR_MESSAGE


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_list_active_memberships(self, routing, history):
        openai_send = AsyncMock(return_value=LLMResponse(
            provider="openai",
            tool_calls=[ToolCall(id="call_1", name="list_memberships", arguments={"status": "active"})],
        ))
        anthropic_send = AsyncMock()
        registry = ProviderRegistry([LegacyConfigResolver({"openai": "k1", "anthropic": "k2"}, environ={})])
        registry.register("openai", lambda api_key, config: MagicMock(send=openai_send))
        registry.register("anthropic", lambda api_key, config: MagicMock(send=anthropic_send))
        cache = ResponseCache(MemoryCacheBackend())
        orchestrator = Orchestrator(
            registry,
            cache,
            primary_provider="anthropic",
            fallback_provider="anthropic",
            forced_provider="openai",
            forced_provider_tools=["list_memberships", "list_plugins"],
        )
        adapter = ConversationAdapter(orchestrator, routing, history)

        reply = await adapter.process_request("List all active memberships")

        assert reply["status"] == "success"
        openai_send.assert_awaited_once()
        anthropic_send.assert_not_awaited()
        assert len(reply["tool_results"]) == 1
        assert reply["tool_results"][0]["tool"] == "list_memberships"
        assert "**Total:** 2" in reply["message"]
        assert "**Active:** 2" in reply["message"]
        assert "| Gold |" in reply["message"]
        # Tool-bearing requests are never cached
        assert cache.stats()["writes"] == 0
