"""Unit tests for LLM providers and the direct LLM executor."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from agent_workflow_engine.config import LLMConfig
from agent_workflow_engine.executors.llm import LLMPromptExecutor
from agent_workflow_engine.llm.factory import LLMFactory
from agent_workflow_engine.llm.openai_provider import OpenAIProvider
from agent_workflow_engine.llm.provider import LLMProvider


def _completion(content: str | None) -> Mock:
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    return response


def test_openai_provider_requires_api_key() -> None:
    with pytest.raises(ValueError, match="API key is required"):
        OpenAIProvider(LLMConfig(openai_api_key=None))


@patch("agent_workflow_engine.llm.openai_provider.OpenAI")
def test_openai_provider_chat(mock_openai: Mock, llm_config: LLMConfig) -> None:
    client = mock_openai.return_value
    client.chat.completions.create.return_value = _completion("hello")

    provider = OpenAIProvider(llm_config)
    result = provider.chat([{"role": "user", "content": "hi"}])

    assert result == "hello"
    mock_openai.assert_called_once_with(api_key="test-key")
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["temperature"] == llm_config.openai_temperature


@patch("agent_workflow_engine.llm.openai_provider.OpenAI")
def test_openai_provider_generate_and_model_override(
    mock_openai: Mock, llm_config: LLMConfig
) -> None:
    client = mock_openai.return_value
    client.chat.completions.create.return_value = _completion(None)

    provider = OpenAIProvider(llm_config, model="gpt-4o")

    assert provider.generate("hi", temperature=0.0) == ""
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["temperature"] == 0.0
    assert kwargs["messages"] == [{"role": "user", "content": "hi"}]


@patch("agent_workflow_engine.llm.openai_provider.OpenAI")
def test_factory_creates_openai_provider(mock_openai: Mock, llm_config: LLMConfig) -> None:
    provider = LLMFactory.create(llm_config)

    assert isinstance(provider, OpenAIProvider)
    assert isinstance(provider, LLMProvider)


def test_llm_executor_sends_agent_as_system_message() -> None:
    provider = Mock(spec=LLMProvider)
    provider.chat.return_value = "answer"

    result = LLMPromptExecutor(provider).execute("reviewer", "check this")

    assert result == "answer"
    provider.chat.assert_called_once_with(
        [
            {"role": "system", "content": "You are reviewer."},
            {"role": "user", "content": "check this"},
        ]
    )
