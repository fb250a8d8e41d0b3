"""Default TaskAdvisor backed by pydantic-ai agents on OpenRouter."""

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

from pydantic_ai.exceptions import AgentRunError

from src.agents.agent_instance import get_categorization_agent, get_decomposition_agent
from src.agents.base import CategorySuggestion, Deps, SubtaskSuggestion
from src.core.config import constants, settings
from src.core.errors import CollaboratorFailure, CollaboratorTimeoutError
from src.core.logging import span


logger = logging.getLogger(__name__)

AgentT = TypeVar("AgentT")


def _load(factory: Callable[[], AgentT], *, operation: str) -> AgentT:
    try:
        return factory()
    except ValueError as e:
        raise CollaboratorFailure(str(e), operation=operation) from e


def _decomposition_prompt(description: str, deps: Deps) -> str:
    locations = ", ".join(deps.location_names) or "none"
    return (
        f"Task: {deps.task_title}\n"
        f"Details: {deps.task_description or '-'}\n"
        f"Blocked because: {description}\n"
        f"Known locations: {locations}\n"
        f"Current time: {deps.current_time.isoformat()}"
    )


class LLMTaskAdvisor:
    """Asks language models to decompose blockers and label tasks.

    Every call is bounded by ``timeout_seconds``; a timeout raises
    CollaboratorTimeoutError and malformed output raises CollaboratorFailure.
    """

    def __init__(self, *, timeout_seconds: float | None = None) -> None:
        self._timeout = timeout_seconds or settings.collaborator_timeout_seconds

    async def decompose(self, description: str, task_context: Deps) -> list[SubtaskSuggestion]:
        with span("advisor.decompose"):
            agent = _load(get_decomposition_agent, operation="decompose")
            prompt = _decomposition_prompt(description, task_context)
            try:
                result = await asyncio.wait_for(agent.run(prompt, deps=task_context), timeout=self._timeout)
            except TimeoutError as e:
                raise CollaboratorTimeoutError(
                    f"Decomposition timed out after {self._timeout}s", operation="decompose"
                ) from e
            except AgentRunError as e:
                raise CollaboratorFailure(f"Decomposition failed: {e}", operation="decompose") from e

            subtasks = result.output.subtasks[: constants.MAX_SUBTASKS]
            logger.info("Blocker decomposed", extra={"task_title": task_context.task_title, "subtasks": len(subtasks)})
            return subtasks

    async def categorize(self, title: str, description: str) -> CategorySuggestion:
        with span("advisor.categorize"):
            agent = _load(get_categorization_agent, operation="categorize")
            prompt = f"Task: {title}\nDetails: {description or '-'}"
            try:
                result = await asyncio.wait_for(agent.run(prompt), timeout=self._timeout)
            except TimeoutError as e:
                raise CollaboratorTimeoutError(
                    f"Categorization timed out after {self._timeout}s", operation="categorize"
                ) from e
            except AgentRunError as e:
                raise CollaboratorFailure(f"Categorization failed: {e}", operation="categorize") from e

            suggestion = result.output
            return suggestion.model_copy(update={"label": suggestion.label.strip().lower()})
