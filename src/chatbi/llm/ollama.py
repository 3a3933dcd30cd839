"""
Ollama LLM
==========

Local LLM provider backed by Ollama through LangChain.
"""

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_ollama import ChatOllama

from chatbi.exceptions import LLMInvocationError
from chatbi.llm.base import LLMInterface
from chatbi.models import LLMResponse

logger = structlog.get_logger(__name__)


class OllamaLLM(LLMInterface):
    """Chat model served by an Ollama instance."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model_name: str = "qwen2.5:7b",
        timeout: float = 45.0,
        temperature: float = 0.0,
    ) -> None:
        """
        Initialize the provider. No connection is made until the first call.

        Args:
            base_url: Ollama HTTP endpoint
            model_name: Model to run
            timeout: Per-request timeout in seconds
            temperature: Sampling temperature (0 keeps JSON output stable)
        """
        self.base_url = base_url
        self.model_name = model_name
        self.timeout = timeout
        self.chat_model = ChatOllama(
            model=model_name,
            base_url=base_url,
            temperature=temperature,
            client_kwargs={"timeout": timeout},
        )

    @property
    def name(self) -> str:
        return "ollama"

    def generate(self, prompt: str, system_prompt: str | None = None) -> LLMResponse:
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        try:
            message = self.chat_model.invoke(messages)
        except Exception as e:
            logger.warning("ollama_call_failed", model=self.model_name, error=str(e))
            raise LLMInvocationError(f"Ollama call failed: {e}") from e

        content = message.content
        if isinstance(content, list):
            content = "".join(
                part if isinstance(part, str) else str(part.get("text", "")) for part in content
            )

        usage = getattr(message, "usage_metadata", None) or {}
        return LLMResponse(
            content=content,
            model=self.model_name,
            tokens_used=usage.get("total_tokens", 0),
        )
