"""Prompt executor that talks to an LLM provider directly, without a session backend."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from agent_workflow_engine.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class LLMPromptExecutor:
    def __init__(self, provider: LLMProvider) -> None:
        self._provider = provider

    def execute(
        self, agent_name: str, prompt: str, *, tools: Mapping[str, bool] | None = None
    ) -> str:
        messages = [
            {"role": "system", "content": f"You are {agent_name}."},
            {"role": "user", "content": prompt},
        ]
        logger.debug("Sending prompt to LLM provider", extra={"agent": agent_name})
        return self._provider.chat(messages)
