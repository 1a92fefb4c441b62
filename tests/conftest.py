"""
Shared pytest fixtures for all tests.
"""

import sys
from pathlib import Path

import pytest

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from nightstalker.core.dice import FixedDice
from nightstalker.core.resolver import Resolver
from nightstalker.core.rules_config import RulesConfig
from nightstalker.core.state import initial_game_state
from nightstalker.llm.gateway import MockGateway
from nightstalker.llm.prompt_registry import PromptRegistry
from nightstalker.llm.storyteller import StoryTeller


# =============================================================================
# Engine Fixtures
# =============================================================================

@pytest.fixture
def rules():
    """Classic rules."""
    return RulesConfig()


@pytest.fixture
def fixed_dice():
    """
    Factory for dice that roll a fixed sequence.

    Usage:
        dice = fixed_dice(15, 3, 20)
    """
    def _make(*rolls, cycle=False):
        return FixedDice(rolls, cycle=cycle)
    return _make


@pytest.fixture
def resolver_with(fixed_dice, rules):
    """Factory for a Resolver over classic rules and fixed rolls."""
    def _make(*rolls, config=None):
        return Resolver(config or rules, fixed_dice(*rolls))
    return _make


@pytest.fixture
def initial_state():
    """A fresh night: survival 100, stalker distant, turn 1 at dusk."""
    return initial_game_state()


# =============================================================================
# LLM Fixtures
# =============================================================================

@pytest.fixture
def mock_gateway():
    """Mock LLM gateway for testing without API calls."""
    return MockGateway()


@pytest.fixture
def prompt_registry():
    """Prompt registry pointing to the packaged prompts."""
    prompts_dir = Path(__file__).parent.parent / "nightstalker" / "prompts"
    return PromptRegistry(prompts_dir)


@pytest.fixture
def story_teller(mock_gateway, prompt_registry):
    """StoryTeller wired to the mock gateway."""
    return StoryTeller(mock_gateway, prompt_registry)


@pytest.fixture
def temp_prompts_dir(tmp_path):
    """Empty directory for prompt registry tests."""
    prompts_dir = tmp_path / "prompts"
    prompts_dir.mkdir()
    return prompts_dir
