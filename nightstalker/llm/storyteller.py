"""
StoryTeller - Asks the narrative generator for the next story segment.

Builds the prompt input from the current state and the conversation so far,
validates the reply against the story_response schema and sanitizes the
proposed choices before anything reaches the engine.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..core.errors import StoryGenerationError
from ..core.rules_config import RulesConfig
from ..core.state import Choice, GameState
from ..core.timeline import turns_until_dawn
from ..core.validator import sanitize_choices
from .gateway import LLMError, LLMGateway, load_schema
from .prompt_registry import PromptRegistry

logger = logging.getLogger(__name__)

OPENING_MESSAGE = (
    "Start a new horror story where I wake up in a dark house, "
    "hearing strange noises outside."
)


@dataclass
class Message:
    """One entry in the conversation sent to the generator."""
    role: str  # 'user' or 'assistant'
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class StoryResponse:
    """A sanitized story segment."""
    story: str
    choices: list[Choice]
    game_state: dict = field(default_factory=dict)


def state_summary(state: GameState) -> str:
    """Plain-text snapshot of the state for the generator."""
    critical = " (CRITICAL!)" if state.survival_score < 50 else ""
    effects = ", ".join(sorted(e.value for e in state.status_effects)) or "none"
    items = ", ".join(state.inventory) or "none"
    companions = ", ".join(
        f"{c.name} ({c.status.value})" for c in state.companions
    ) or "none"
    progress = state.progress
    return "\n".join([
        f"- Survival Score: {state.survival_score}{critical}",
        f"- Stalker Presence: {state.stalker_presence.value}",
        f"- Status Effects: {effects}",
        f"- Items: {items}",
        f"- Tension: {state.tension}/10",
        f"- Encounters: {state.encounter_count}",
        f"- Companions: {companions}",
        f"- Turn: {progress.current_turn}/{progress.total_turns} "
        f"({progress.time_of_night.value}, {turns_until_dawn(progress.current_turn, progress.total_turns)} turns until dawn)",
    ])


def format_history(messages: list[Message], limit: int = 12) -> str:
    """Most recent messages, oldest first, one per paragraph."""
    recent = messages[-limit:]
    if not recent:
        return "(nothing yet)"
    return "\n\n".join(f"[{m.role}] {m.content}" for m in recent)


class StoryTeller:
    """Wraps the gateway call for a single story segment."""

    PROMPT_ID = "story"

    def __init__(
        self,
        gateway: LLMGateway,
        prompt_registry: Optional[PromptRegistry] = None,
        prompt_version: Optional[str] = None,
        config: Optional[RulesConfig] = None,
    ):
        self.gateway = gateway
        self.prompts = prompt_registry or PromptRegistry()
        self.prompt_version = prompt_version
        self.config = config or RulesConfig()

    def generate(self, messages: list[Message], state: GameState) -> StoryResponse:
        """
        Request the next segment.

        Raises:
            StoryGenerationError: the generator call failed or its reply
                was unusable
            ChoiceCountError: the reply carried the wrong number of choices
        """
        try:
            prompt = self.prompts.get_prompt(self.PROMPT_ID, self.prompt_version)
            schema = load_schema(prompt.schema_name)
        except FileNotFoundError as e:
            raise StoryGenerationError(str(e)) from e

        input_data = {
            "state_summary": state_summary(state),
            "history": format_history(messages),
            "choice_count": self.config.choices_per_turn,
            "total_turns": state.progress.total_turns,
        }

        try:
            response = self.gateway.run_structured(
                prompt=prompt.template,
                input_data=input_data,
                schema=schema,
            )
        except LLMError as e:
            raise StoryGenerationError(f"Story generation failed: {e}") from e

        content = response.content
        choices = sanitize_choices(content.get("choices", []), self.config.choices_per_turn)

        logger.debug("Story segment from %s in %.0fms", response.model, response.latency_ms)
        return StoryResponse(
            story=content["story"],
            choices=choices,
            game_state=content.get("gameState") or {},
        )
