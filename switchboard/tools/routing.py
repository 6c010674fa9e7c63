"""
Tool routing table.

Built once from a ToolRegistry. It owns both directions of the tool surface:

- ``schemas()``: one provider Tool per exposed operation, named
  ``"<namespace>_<operation>"``
- ``resolve(name)``: maps a model-emitted tool name back to (tool, operation)

Resolution precedence:

1. exact match against the generated names
2. domain dispatch: a tool whose namespace prefixes the name
3. fallback scan: any tool exposing an operation with exactly that name,
   dedicated domain tools before generic ones

Operations whose name contains a conflict-exclusion substring are not
exposed or resolved for tools flagged ``yields_to_domain_tools``; a dedicated domain tool
already covers that intent.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from switchboard.config.logging import get_logger
from switchboard.errors import ToolExecutionError
from switchboard.llm.models import Tool, ToolCall
from switchboard.tools.base import BaseTool, ToolRegistry

logger = get_logger(__name__)

DEFAULT_CONFLICT_EXCLUSIONS = frozenset({"membership"})


def _is_excluded(tool: BaseTool, operation: str, exclusions: Iterable[str]) -> bool:
    """Generic tools give up operations a domain tool owns."""
    return tool.yields_to_domain_tools and any(ex in operation for ex in exclusions)


@dataclass(frozen=True)
class Route:
    """A resolved tool name."""

    tool: BaseTool
    operation: str
    schema: Tool | None = None


class ToolRoutingTable:
    """Exposed tool names mapped to their handlers."""

    def __init__(
        self,
        routes: dict[str, Route],
        tools: list[BaseTool],
        conflict_exclusions: frozenset[str] = DEFAULT_CONFLICT_EXCLUSIONS,
    ):
        self._routes = routes
        self._tools = tools
        self.conflict_exclusions = conflict_exclusions

    @classmethod
    def build(
        cls,
        registry: ToolRegistry,
        conflict_exclusions: Iterable[str] = DEFAULT_CONFLICT_EXCLUSIONS,
    ) -> ToolRoutingTable:
        """Generate schemas and routes for every registered tool."""
        exclusions = frozenset(conflict_exclusions)
        routes: dict[str, Route] = {}
        tools = registry.all()

        for tool in tools:
            for operation in tool.describe_operations():
                if _is_excluded(tool, operation.name, exclusions):
                    logger.debug(f"Skipping {tool.name}.{operation.name}: covered by a domain tool")
                    continue

                name = f"{tool.namespace}_{operation.name}"
                if name in routes:
                    logger.warning(f"Duplicate tool name '{name}' from {tool.name}, keeping the first")
                    continue

                schema = Tool(
                    name=name,
                    description=operation.description,
                    parameters=tool.parameters_schema(operation),
                )
                routes[name] = Route(tool=tool, operation=operation.name, schema=schema)

        logger.info(f"Tool routing table built: {len(routes)} tools from {len(tools)} implementations")
        return cls(routes, tools, exclusions)

    def schemas(self) -> list[Tool]:
        return [route.schema for route in self._routes.values() if route.schema is not None]

    def names(self) -> list[str]:
        return list(self._routes)

    def resolve(self, name: str) -> Route:
        """
        Map a model-emitted tool name to its handler.

        Raises:
            ToolExecutionError: If no tool exposes the name
        """
        route = self._routes.get(name)
        if route is not None:
            return route

        for tool in self._tools:
            prefix = f"{tool.namespace}_"
            if not name.startswith(prefix):
                continue
            operation = name[len(prefix):]
            if tool.has_operation(operation) and not _is_excluded(tool, operation, self.conflict_exclusions):
                logger.debug(f"Domain dispatch: {name} -> {tool.name}")
                return Route(tool=tool, operation=operation)

        # Dedicated tools first so generic ones never shadow them
        for tool in sorted(self._tools, key=lambda t: t.yields_to_domain_tools):
            if tool.has_operation(name) and not _is_excluded(tool, name, self.conflict_exclusions):
                logger.debug(f"Fallback scan: {name} -> {tool.name}")
                return Route(tool=tool, operation=name)

        raise ToolExecutionError(name, f"Unknown tool: {name}")

    async def dispatch(self, call: ToolCall) -> Any:
        """Resolve and invoke a single tool call."""
        route = self.resolve(call.name)
        arguments = {k: v for k, v in call.arguments.items() if k != "operation"}
        return await route.tool.invoke(route.operation, arguments)
