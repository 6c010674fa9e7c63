"""
Tool surface exposed to the model: tool base classes, the routing table that
turns them into provider schemas and back, and result formatting.
"""

from switchboard.tools.base import BaseTool, CallableTool, OperationSpec, OperationTool, ParamSpec, ToolRegistry
from switchboard.tools.formatting import ResultFormatter, TableFormatter, render_tool_results
from switchboard.tools.routing import Route, ToolRoutingTable

__all__ = [
    "BaseTool",
    "CallableTool",
    "OperationSpec",
    "OperationTool",
    "ParamSpec",
    "ResultFormatter",
    "Route",
    "TableFormatter",
    "ToolRegistry",
    "ToolRoutingTable",
    "render_tool_results",
]
