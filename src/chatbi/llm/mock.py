"""
Mock LLM
========

Mock LLM implementation for testing and demonstration.
"""

from chatbi.exceptions import LLMInvocationError
from chatbi.llm.base import LLMInterface
from chatbi.models import LLMResponse


class MockLLM(LLMInterface):
    """
    Mock LLM for demonstration and testing purposes.

    In production, replace with ``OllamaLLM`` or another provider.
    """

    def __init__(
        self,
        responses: dict[str, list[str]] | None = None,
        default: str = "{}",
        error: Exception | None = None,
    ) -> None:
        """
        Initialize with canned responses.

        Args:
            responses: Dict mapping prompt substrings to list of answers.
                       Each answer is returned in sequence, the last one repeats.
            default: Answer used when no key matches
            error: If set, every call raises this error instead of answering
        """
        self.responses = responses or {}
        self.default = default
        self.error = error
        self.call_counts: dict[str, int] = {}
        self.prompts: list[str] = []

    def generate(self, prompt: str, system_prompt: str | None = None) -> LLMResponse:
        """
        Generate a mock answer.

        Matches the prompt against configured keys and returns successive
        answers for repeated matches.
        """
        self.prompts.append(prompt)

        if self.error is not None:
            if isinstance(self.error, LLMInvocationError):
                raise self.error
            raise LLMInvocationError(str(self.error)) from self.error

        for key, answers in self.responses.items():
            if key.lower() in prompt.lower():
                count = self.call_counts.get(key, 0)
                self.call_counts[key] = count + 1

                attempt_idx = min(count, len(answers) - 1)
                return LLMResponse(
                    content=answers[attempt_idx],
                    model="mock-llm-v1",
                )

        return LLMResponse(
            content=self.default,
            model="mock-llm-v1",
        )

    @property
    def last_prompt(self) -> str | None:
        return self.prompts[-1] if self.prompts else None
