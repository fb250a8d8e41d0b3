"""Agent instances for task decomposition and categorization.

Agents are built lazily so importing this module never needs credentials.
"""

import logging

from pydantic_ai import Agent
from pydantic_ai.models.openrouter import OpenRouterModel
from pydantic_ai.providers.openrouter import OpenRouterProvider

from src.agents.base import CategorySuggestion, DecompositionPlan, Deps
from src.core.config import constants, settings


logger = logging.getLogger(__name__)


DECOMPOSITION_INSTRUCTIONS = f"""You break a blocked household or errand task into concrete steps.

Given the task and the reason it is blocked, return at most {constants.MAX_SUBTASKS} sub-tasks
in the order they should be done. Each sub-task is a single physical action with a short
imperative title. Only set location_name to one of the known locations listed in the prompt.
Return an empty list if the blocker needs no action from the user.
"""

CATEGORIZATION_INSTRUCTIONS = """You label tasks with one short lower-case category such as
'groceries', 'cleaning', 'hardware-store' or 'paperwork'. Report your confidence between 0 and 1
and whether several tasks of this category are usually done in one trip or session.
"""


class _AgentState:
    """Singleton state for agent instances."""

    decomposition: Agent[Deps, DecompositionPlan] | None = None
    categorization: Agent[None, CategorySuggestion] | None = None


def _create_model() -> OpenRouterModel:
    api_key = settings.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)
    return OpenRouterModel(model_name=settings.model_id, provider=provider)


def get_decomposition_agent() -> Agent[Deps, DecompositionPlan]:
    """Get or create the decomposition agent."""
    if _AgentState.decomposition is None:
        # Retries are handled by AgentRetryHandler
        _AgentState.decomposition = Agent(
            model=_create_model(),
            deps_type=Deps,
            output_type=DecompositionPlan,
            instructions=DECOMPOSITION_INSTRUCTIONS,
            retries=0,
        )
        logger.info("Decomposition agent created", extra={"model_id": settings.model_id})
    return _AgentState.decomposition


def get_categorization_agent() -> Agent[None, CategorySuggestion]:
    """Get or create the categorization agent."""
    if _AgentState.categorization is None:
        _AgentState.categorization = Agent(
            model=_create_model(),
            output_type=CategorySuggestion,
            instructions=CATEGORIZATION_INSTRUCTIONS,
            retries=0,
        )
        logger.info("Categorization agent created", extra={"model_id": settings.model_id})
    return _AgentState.categorization


def reset_agents() -> None:
    """Drop cached agents (used by tests and after settings changes)."""
    _AgentState.decomposition = None
    _AgentState.categorization = None
