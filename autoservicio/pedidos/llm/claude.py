"""Claude API generation backend."""

from __future__ import annotations

from . import GenerationBackend


class ClaudeGenerationBackend(GenerationBackend):
    """Generate replies with Anthropic's Messages API."""

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def generate(
        self, prompt: str, max_tokens: int = 200, temperature: float = 0.3
    ) -> str:
        if not self._api_key:
            raise ValueError(
                "No hay API key de Anthropic configurada. "
                "Revise el archivo de configuracion o la variable ANTHROPIC_API_KEY."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        response = await client.messages.create(
            model=self._model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text
