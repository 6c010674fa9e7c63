"""
Base classes for tools the model may invoke.

Two kinds of tool implementations exist:

- OperationTool: a fixed operation vocabulary behind one
  ``execute({"operation": ..., **args})`` entry point. The routing table
  emits one schema per operation, each pinning ``operation`` to that value.
- CallableTool: plain public methods are the operations. Parameter schemas
  are reflected from method signatures on a best-effort basis.

Both describe themselves through ``describe_operations()`` so schema
generation never needs to know which kind it is looking at.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from switchboard.config.logging import get_logger
from switchboard.errors import ToolExecutionError

logger = get_logger(__name__)

_JSON_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}
_JSON_TYPE_NAMES = {t.__name__: name for t, name in _JSON_TYPES.items()}


class ParamSpec(BaseModel):
    """One parameter of a tool operation."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Parameter name")
    type: str = Field(default="string", description="JSON schema type")
    description: str = Field(default="", description="Human-readable description")
    required: bool = Field(default=False, description="Whether the model must supply it")
    enum: tuple[Any, ...] | None = Field(default=None, description="Allowed values")
    default: Any = Field(default=None, description="Default value, informational only")

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        return schema


class OperationSpec(BaseModel):
    """A single invocable operation of a tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Operation name")
    description: str = Field(default="", description="What the operation does")
    params: tuple[ParamSpec, ...] = Field(default=(), description="Operation parameters")


class BaseTool(ABC):
    """
    Abstract base class for tools.

    Attributes:
        name: Registry key, also the default schema namespace
        description: Used when an operation has no description of its own
        yields_to_domain_tools: When True, operations overlapping a dedicated
            domain tool (see ToolRoutingTable conflict exclusions) are not
            exposed through this tool
    """

    name: str = ""
    description: str = ""
    yields_to_domain_tools: bool = False

    @property
    def namespace(self) -> str:
        return self.name

    @abstractmethod
    def describe_operations(self) -> list[OperationSpec]:
        """Enumerate the operations this tool exposes."""
        pass

    @abstractmethod
    async def invoke(self, operation: str, arguments: dict[str, Any]) -> Any:
        """
        Run one operation.

        Args:
            operation: Operation name from describe_operations()
            arguments: Model-supplied arguments

        Returns:
            Tool result (usually a dict, possibly with a ``data`` payload)

        Raises:
            ToolExecutionError: If the operation is unknown or fails
        """
        pass

    def has_operation(self, operation: str) -> bool:
        return any(op.name == operation for op in self.describe_operations())

    def parameters_schema(self, operation: OperationSpec) -> dict[str, Any]:
        """JSON schema for one operation's arguments."""
        return {
            "type": "object",
            "properties": {p.name: p.to_schema() for p in operation.params},
            "required": [p.name for p in operation.params if p.required],
        }


class OperationTool(BaseTool):
    """
    Tool with a fixed operation vocabulary.

    Subclasses list ``valid_operations`` and implement ``run``. Per-operation
    parameters and descriptions are optional.
    """

    valid_operations: tuple[str, ...] = ()
    operation_descriptions: dict[str, str] = {}

    def operation_params(self, operation: str) -> list[ParamSpec]:
        return []

    def describe_operations(self) -> list[OperationSpec]:
        return [
            OperationSpec(
                name=op,
                description=self.operation_descriptions.get(op, f"{self.description or self.name}: {op}"),
                params=tuple(self.operation_params(op)),
            )
            for op in self.valid_operations
        ]

    def has_operation(self, operation: str) -> bool:
        return operation in self.valid_operations

    def parameters_schema(self, operation: OperationSpec) -> dict[str, Any]:
        schema = super().parameters_schema(operation)
        schema["properties"] = {
            "operation": {
                "type": "string",
                "description": "The operation to perform",
                "enum": [operation.name],
            },
            **schema["properties"],
        }
        schema["required"] = ["operation", *schema["required"]]
        return schema

    @abstractmethod
    async def run(self, operation: str, arguments: dict[str, Any]) -> Any:
        """Perform a validated operation."""
        pass

    async def execute(self, parameters: dict[str, Any]) -> Any:
        """Entry point taking ``{"operation": ..., **args}``."""
        arguments = dict(parameters)
        operation = arguments.pop("operation", None)
        if not operation:
            raise ToolExecutionError(self.name, "Missing required parameter: operation")
        if operation not in self.valid_operations:
            raise ToolExecutionError(self.name, f"Invalid operation: {operation}")
        return await self.run(operation, arguments)

    async def invoke(self, operation: str, arguments: dict[str, Any]) -> Any:
        return await self.execute({**arguments, "operation": operation})


class CallableTool(BaseTool):
    """
    Tool whose public methods are its operations.

    Parameter types come from annotations where they map to a JSON type and
    default to string otherwise; a parameter is required iff it has no
    default.
    """

    def _operation_names(self) -> list[str]:
        reserved = set(dir(CallableTool))
        return [
            name
            for name, member in inspect.getmembers(type(self), callable)
            if not name.startswith("_") and name not in reserved
        ]

    @staticmethod
    def _json_type(annotation: Any) -> str:
        if annotation is inspect.Parameter.empty:
            return "string"
        if isinstance(annotation, str):
            return _JSON_TYPE_NAMES.get(annotation.split("[")[0].split("|")[0].strip(), "string")
        origin = getattr(annotation, "__origin__", None)
        return _JSON_TYPES.get(origin or annotation, "string")

    def _describe_method(self, name: str) -> OperationSpec:
        method = getattr(self, name)
        params = []
        for param in inspect.signature(method).parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            has_default = param.default is not inspect.Parameter.empty
            params.append(
                ParamSpec(
                    name=param.name,
                    type=self._json_type(param.annotation),
                    required=not has_default,
                    default=param.default if has_default else None,
                )
            )
        doc = inspect.getdoc(method) or ""
        return OperationSpec(
            name=name,
            description=doc.splitlines()[0] if doc else f"{self.name} {name}",
            params=tuple(params),
        )

    def describe_operations(self) -> list[OperationSpec]:
        return [self._describe_method(name) for name in self._operation_names()]

    def has_operation(self, operation: str) -> bool:
        return operation in self._operation_names()

    async def invoke(self, operation: str, arguments: dict[str, Any]) -> Any:
        if not self.has_operation(operation):
            raise ToolExecutionError(self.name, f"Invalid operation: {operation}")
        result = getattr(self, operation)(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """Registered tool implementations, in registration order."""

    def __init__(self, tools: list[BaseTool] | None = None):
        self._tools: dict[str, BaseTool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if not tool.name:
            raise ValueError(f"{type(tool).__name__} has no name")
        if tool.name in self._tools:
            logger.warning(f"Replacing registered tool '{tool.name}'")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def all(self) -> list[BaseTool]:
        return list(self._tools.values())
