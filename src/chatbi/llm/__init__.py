"""
LLM Module
==========

Pluggable language-model interfaces for semantic SQL conversion.
"""

from chatbi.llm.base import LLMInterface
from chatbi.llm.mock import MockLLM
from chatbi.llm.ollama import OllamaLLM

__all__ = [
    "LLMInterface",
    "MockLLM",
    "OllamaLLM",
]
