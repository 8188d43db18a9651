"""Abstract base for the text-generation backends agents run on."""

from abc import ABC, abstractmethod

from roundtable.errors import RoundtableError
from roundtable.models import AgentReply


class ProviderError(RoundtableError):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the model key from settings.yaml (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, round_number: int, system: str | None = None) -> AgentReply:
        """Generate text for the given prompt.

        Args:
            prompt: The full prompt text to send.
            round_number: The debate round number (1-indexed, 0 for utility calls).
            system: Optional system instruction, usually the agent persona.

        Returns:
            AgentReply with content and metadata. The agent field holds the
            provider name; callers rebind it to the agent id.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...
