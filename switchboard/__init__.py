"""
Switchboard - multi-provider LLM request orchestration.

This package routes normalized chat/tool-calling requests to upstream model
providers, caches responses, falls back to a secondary provider on failure,
and folds tool-call results back into a user-facing reply.
"""

__version__ = "0.1.0"
