"""Tests for generation backends (mocked API calls)."""

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from autoservicio.pedidos.config import load_config
from autoservicio.pedidos.llm import GenerationBackend, create_backend
from autoservicio.pedidos.llm.claude import ClaudeGenerationBackend
from autoservicio.pedidos.llm.gemini import GeminiGenerationBackend


class TestCreateBackend:
    def test_default_is_gemini(self):
        backend = create_backend(load_config())
        assert isinstance(backend, GeminiGenerationBackend)
        assert isinstance(backend, GenerationBackend)

    def test_create_claude_backend(self):
        config = load_config()
        config.llm.backend = "claude"
        assert isinstance(create_backend(config), ClaudeGenerationBackend)

    def test_create_unknown_backend(self):
        config = load_config()
        config.llm.backend = "unknown"
        with pytest.raises(ValueError, match="desconocido"):
            create_backend(config)


class TestClaudeGenerationBackend:
    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        backend = ClaudeGenerationBackend(api_key="")
        with pytest.raises(ValueError, match="API key"):
            await backend.generate("hola")

    @pytest.mark.asyncio
    async def test_generate_mocked(self):
        mock_response = MagicMock()
        mock_response.content = [MagicMock(text='{"selectedId": 1}')]

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        mock_anthropic = MagicMock()
        mock_anthropic.AsyncAnthropic.return_value = mock_client

        with patch.dict(sys.modules, {"anthropic": mock_anthropic}):
            backend = ClaudeGenerationBackend(api_key="test-key", model="claude-test")
            text = await backend.generate("elige", max_tokens=50)

        assert text == '{"selectedId": 1}'
        mock_anthropic.AsyncAnthropic.assert_called_once_with(api_key="test-key")
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"] == [{"role": "user", "content": "elige"}]


class TestGeminiGenerationBackend:
    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        backend = GeminiGenerationBackend(api_key="")
        with pytest.raises(ValueError, match="API key"):
            await backend.generate("hola")

    @pytest.mark.asyncio
    async def test_generate_mocked(self):
        mock_model = MagicMock()
        mock_model.generate_content_async = AsyncMock(
            return_value=MagicMock(text='{"quantity": 2}')
        )

        mock_genai = MagicMock()
        mock_genai.GenerativeModel.return_value = mock_model
        mock_google = MagicMock()
        mock_google.generativeai = mock_genai

        with patch.dict(
            sys.modules, {"google": mock_google, "google.generativeai": mock_genai}
        ):
            backend = GeminiGenerationBackend(api_key="test-key", model="gemini-test")
            text = await backend.generate("cuantos", temperature=0.1)

        assert text == '{"quantity": 2}'
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        mock_genai.GenerativeModel.assert_called_once_with("gemini-test")
        config = mock_model.generate_content_async.call_args.kwargs["generation_config"]
        assert config["temperature"] == 0.1
