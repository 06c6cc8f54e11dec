"""Gemini API generation backend."""

from __future__ import annotations

from . import GenerationBackend


class GeminiGenerationBackend(GenerationBackend):
    """Generate replies with Google Gemini."""

    def __init__(self, api_key: str = "", model: str = "gemini-1.5-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def generate(
        self, prompt: str, max_tokens: int = 200, temperature: float = 0.3
    ) -> str:
        if not self._api_key:
            raise ValueError(
                "No hay API key de Gemini configurada. "
                "Revise el archivo de configuracion o la variable GEMINI_API_KEY."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)
        response = await model.generate_content_async(
            prompt,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_tokens,
            },
        )
        return response.text
