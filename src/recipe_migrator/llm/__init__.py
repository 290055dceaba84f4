"""
Recipe Migrator - LLM Client.

Provides structured LLM calls via Instructor.
"""

from recipe_migrator.llm.client import call_llm, get_client, reset_client

__all__ = [
    "get_client",
    "call_llm",
    "reset_client",
]
