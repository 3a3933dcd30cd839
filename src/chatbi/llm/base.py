"""
Base LLM Interface
==================

Abstract interface for LLM providers.
"""

from abc import ABC, abstractmethod

from chatbi.models import LLMResponse


class LLMInterface(ABC):
    """Abstract interface for LLM providers."""

    @abstractmethod
    def generate(self, prompt: str, system_prompt: str | None = None) -> LLMResponse:
        """
        Generate a response from the LLM.

        Implementations make a single request and raise
        ``LLMInvocationError`` on transport errors or timeouts.

        Args:
            prompt: The user prompt/question
            system_prompt: Optional system prompt for context

        Returns:
            LLMResponse with generated content
        """
        pass

    @property
    def name(self) -> str:
        """Provider name recorded in debug traces."""
        return type(self).__name__
