"""Text generation backend base class and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import PedidosConfig


class GenerationBackend(ABC):
    """Abstract base for a hosted language model used for product choice."""

    @abstractmethod
    async def generate(
        self, prompt: str, max_tokens: int = 200, temperature: float = 0.3
    ) -> str:
        """Send a single-turn prompt and return the raw reply text."""
        ...


def create_backend(config: PedidosConfig) -> GenerationBackend:
    """Create a generation backend based on configuration."""
    backend_name = config.llm.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeGenerationBackend

            return ClaudeGenerationBackend(
                api_key=config.llm.claude.api_key,
                model=config.llm.claude.model,
            )
        case "gemini":
            from .gemini import GeminiGenerationBackend

            return GeminiGenerationBackend(
                api_key=config.llm.gemini.api_key,
                model=config.llm.gemini.model,
            )
        case _:
            raise ValueError(
                f"Backend de IA desconocido: {backend_name!r}  "
                f"(elija claude / gemini)"
            )
