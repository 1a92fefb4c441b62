"""
Tests for the Resolver.

Every test injects fixed dice, so each roll is known up front.
"""

import pytest

from nightstalker.core.dice import FixedDice
from nightstalker.core.errors import InvalidChoiceError
from nightstalker.core.resolver import Resolver, resolve_action
from nightstalker.core.rules_config import get_preset, load_rules_config
from nightstalker.core.state import (
    ActionType,
    Choice,
    StalkerPresence,
    StatusEffect,
    TimeOfNight,
)
from nightstalker.core.timeline import time_of_night
from tests.fixtures import (
    combat_choice,
    escape_choice,
    make_choice,
    make_state,
    search_choice,
    stealth_choice,
)


class TestRollCheck:
    """Tests for the d20 check itself."""

    def test_plain_success(self, resolver_with, initial_state):
        """Roll 15, modifier 0, dc 12 succeeds with a total of 15."""
        result = resolver_with(15).resolve(search_choice(dc=12), initial_state)

        assert result.success is True
        assert result.roll.raw == 15
        assert result.roll.modifier == 0
        assert result.roll.total == 15
        assert result.outcome_text == "Success! (Rolled 15 + 0 = 15, needed 12)"

    def test_plain_failure(self, resolver_with, initial_state):
        result = resolver_with(5).resolve(search_choice(dc=12), initial_state)

        assert result.success is False
        assert result.outcome_text == "Failure! (Rolled 5 + 0 = 5, needed 12)"

    def test_negative_modifier_in_text(self, resolver_with):
        state = make_state(effects=["injured"])
        result = resolver_with(5).resolve(search_choice(dc=12), state)
        assert result.outcome_text == "Failure! (Rolled 5 - 2 = 3, needed 12)"

    def test_critical_success(self, resolver_with, initial_state):
        """A margin of 10 or more is critical."""
        result = resolver_with(20).resolve(search_choice(dc=5), initial_state)
        assert result.roll.quality == "critical_success"
        assert result.outcome_text.startswith("Critical success!")

    def test_critical_failure(self, resolver_with, initial_state):
        result = resolver_with(1).resolve(search_choice(dc=12), initial_state)
        assert result.roll.quality == "critical_failure"
        assert result.roll.margin == -11
        assert result.outcome_text.startswith("Critical failure!")

    def test_dc_20_needs_20(self, resolver_with, initial_state):
        """dc 20 requires a final roll of at least 20."""
        assert resolver_with(19).resolve(search_choice(dc=20), initial_state).success is False
        assert resolver_with(20).resolve(search_choice(dc=20), initial_state).success is True

    def test_dc_1_always_succeeds_without_penalties(self, resolver_with, initial_state):
        assert resolver_with(1).resolve(search_choice(dc=1), initial_state).success is True

    def test_one_die_per_resolution(self, rules, initial_state):
        dice = FixedDice([12, 3])
        Resolver(rules, dice).resolve(search_choice(), initial_state)
        assert dice.position == 1


class TestModifiers:
    """Tests for the circumstantial modifier."""

    def test_fresh_state_has_no_modifier(self, rules, initial_state):
        resolver = Resolver(rules)
        assert resolver.modifier_breakdown(initial_state, search_choice()) == {}
        assert resolver.circumstantial_modifier(initial_state, search_choice()) == 0

    def test_injured_and_exposed_stack(self, rules):
        """Both -2 penalties apply, whatever the action type."""
        state = make_state(effects=["injured", "exposed"])
        resolver = Resolver(rules)
        for action in ActionType:
            parts = resolver.modifier_breakdown(state, make_choice(action.value))
            assert parts["injured"] == -2
            assert parts["exposed"] == -2
        assert resolver.circumstantial_modifier(state, search_choice()) == -4

    def test_hidden_only_helps_stealth(self, rules):
        state = make_state(effects=["hidden"])
        resolver = Resolver(rules)
        assert resolver.circumstantial_modifier(state, stealth_choice()) == 2
        assert resolver.circumstantial_modifier(state, search_choice()) == 0

    def test_weapon_and_empowered_help_combat(self, rules):
        state = make_state(effects=["empowered"], has_weapon=True)
        resolver = Resolver(rules)
        assert resolver.circumstantial_modifier(state, combat_choice()) == 4
        assert resolver.circumstantial_modifier(state, escape_choice()) == 0

    def test_critical_condition(self, rules):
        resolver = Resolver(rules)
        assert resolver.circumstantial_modifier(make_state(survival=49), search_choice()) == -2
        assert resolver.circumstantial_modifier(make_state(survival=50), search_choice()) == 0

    @pytest.mark.parametrize("turn, expected", [
        (1, 0), (7, -1), (13, -2), (19, -2), (25, -1),
    ])
    def test_time_of_night(self, rules, turn, expected):
        state = make_state(turn=turn)
        assert Resolver(rules).circumstantial_modifier(state, search_choice()) == expected

    def test_high_tension(self, rules):
        resolver = Resolver(rules)
        assert resolver.circumstantial_modifier(make_state(tension=8), search_choice()) == -1
        assert resolver.circumstantial_modifier(make_state(tension=7), search_choice()) == 0

    def test_closer_stalker_never_helps(self, rules):
        """Each rung up the ladder is at least as bad as the one before."""
        resolver = Resolver(rules)
        values = [
            resolver.circumstantial_modifier(make_state(presence=p), search_choice())
            for p in StalkerPresence
        ]
        assert values == sorted(values, reverse=True)
        assert values[-1] == -1

    def test_environment_capped(self, rules):
        state = make_state(environment={"darkness": 3, "noise": 3, "weather": 3})
        assert Resolver(rules).modifier_breakdown(state, search_choice())["environment"] == -2

    def test_environment_never_helps(self, rules):
        state = make_state(environment={"darkness": -3})
        assert "environment" not in Resolver(rules).modifier_breakdown(state, search_choice())

    def test_total_capped(self, rules):
        """Everything going wrong at once still stops at -5."""
        state = make_state(
            survival=30, tension=9, presence=StalkerPresence.IMMINENT,
            effects=["injured", "exposed"], turn=13,
            environment={"darkness": 3},
        )
        resolver = Resolver(rules)
        assert sum(resolver.modifier_breakdown(state, search_choice()).values()) < -5
        assert resolver.circumstantial_modifier(state, search_choice()) == -5


class TestSurvival:
    """Tests for survival changes."""

    def test_success_reward_scales_with_dc(self, resolver_with):
        state = make_state(survival=60)
        result = resolver_with(20).resolve(search_choice(dc=12, reward=25), state)
        assert result.new_game_state.survival_score == 75

    def test_success_reward_capped_by_choice(self, resolver_with):
        state = make_state(survival=60)
        result = resolver_with(20).resolve(search_choice(dc=16, reward=10), state)
        assert result.new_game_state.survival_score == 70

    def test_failure_costs_risk(self, resolver_with, initial_state):
        result = resolver_with(2).resolve(search_choice(dc=12, risk=-15), initial_state)
        assert result.new_game_state.survival_score == 85
        assert result.consequences.survival_change == -15

    def test_half_penalty_rules(self, fixed_dice, initial_state):
        config = load_rules_config({"failure_penalty_mode": "half"})
        result = Resolver(config, fixed_dice(2)).resolve(search_choice(dc=12, risk=-15), initial_state)
        assert result.new_game_state.survival_score == 92

    def test_clamped_at_zero(self, resolver_with):
        state = make_state(survival=10)
        result = resolver_with(1).resolve(search_choice(dc=20, risk=-30), state)
        assert result.new_game_state.survival_score == 0

    def test_clamped_at_max(self, resolver_with):
        state = make_state(survival=95)
        result = resolver_with(20).resolve(search_choice(dc=20, reward=25), state)
        assert result.new_game_state.survival_score == 100

    def test_overheal_ceiling(self, fixed_dice):
        config = get_preset("overheal")
        state = make_state(survival=140)
        result = Resolver(config, fixed_dice(20)).resolve(search_choice(dc=20, reward=25), state)
        assert result.new_game_state.survival_score == 150

    def test_bleeding_drains_on_success(self, resolver_with):
        state = make_state(survival=50, effects=["bleeding"])
        result = resolver_with(20).resolve(search_choice(dc=8, reward=10), state)
        assert result.new_game_state.survival_score == 55
        assert result.consequences.survival_change == 5

    def test_bleeding_drains_on_failure(self, resolver_with):
        state = make_state(survival=50, effects=["bleeding"])
        result = resolver_with(1).resolve(search_choice(dc=12, risk=-10), state)
        assert result.new_game_state.survival_score == 35


class TestTension:
    """Tests for tension changes."""

    def test_failure_adds_one(self, resolver_with, initial_state):
        result = resolver_with(2).resolve(search_choice(dc=12), initial_state)
        assert result.new_game_state.tension == 1

    def test_combat_failure_adds_three(self, resolver_with, initial_state):
        result = resolver_with(2).resolve(combat_choice(dc=12), initial_state)
        assert result.new_game_state.tension == 3

    def test_imminent_stalker_adds_two(self, resolver_with):
        state = make_state(presence=StalkerPresence.IMMINENT)
        result = resolver_with(18).resolve(search_choice(dc=10), state)
        assert result.new_game_state.tension == 2

    def test_stealth_success_calms(self, resolver_with):
        state = make_state(tension=3)
        result = resolver_with(15).resolve(stealth_choice(dc=10), state)
        assert result.new_game_state.tension == 2

    def test_clamped(self, resolver_with):
        high = resolver_with(1).resolve(combat_choice(dc=12), make_state(tension=10))
        low = resolver_with(15).resolve(stealth_choice(dc=10), make_state(tension=0))
        assert high.new_game_state.tension == 10
        assert low.new_game_state.tension == 0


class TestStalkerPresence:
    """Tests for movement along the threat ladder."""

    def test_failure_escalates(self, resolver_with, initial_state):
        result = resolver_with(2).resolve(search_choice(dc=12), initial_state)
        assert result.new_game_state.stalker_presence == StalkerPresence.HUNTING

    def test_high_tension_escalates_on_success(self, resolver_with):
        state = make_state(tension=7, presence=StalkerPresence.HUNTING, has_weapon=True)
        result = resolver_with(15).resolve(combat_choice(dc=10), state)
        assert result.success is True
        assert result.new_game_state.tension == 9
        assert result.new_game_state.stalker_presence == StalkerPresence.CLOSING_IN

    def test_success_backs_off(self, resolver_with):
        state = make_state(presence=StalkerPresence.CLOSING_IN)
        result = resolver_with(18).resolve(search_choice(dc=10), state)
        assert result.new_game_state.stalker_presence == StalkerPresence.HUNTING

    def test_relentless_never_backs_off(self, fixed_dice):
        state = make_state(presence=StalkerPresence.HUNTING)
        result = Resolver(get_preset("relentless"), fixed_dice(18)).resolve(search_choice(dc=10), state)
        assert result.new_game_state.stalker_presence == StalkerPresence.HUNTING

    def test_imminent_stays_imminent(self, resolver_with):
        state = make_state(presence=StalkerPresence.IMMINENT)
        result = resolver_with(1).resolve(search_choice(dc=12), state)
        assert result.new_game_state.stalker_presence == StalkerPresence.IMMINENT

    def test_never_skips_a_rung(self, rules):
        """Presence moves at most one step per resolution."""
        for presence in StalkerPresence:
            for roll in range(1, 21):
                state = make_state(presence=presence, tension=6)
                result = Resolver(rules, FixedDice([roll])).resolve(combat_choice(dc=12), state)
                step = result.new_game_state.stalker_presence.rank - presence.rank
                assert -1 <= step <= 1


class TestStatusEffects:
    """Tests for status effect updates."""

    def test_combat_failure_injures(self, resolver_with, initial_state):
        result = resolver_with(2).resolve(combat_choice(dc=12), initial_state)
        assert StatusEffect.INJURED in result.new_game_state.status_effects

    def test_stealth_success_hides(self, resolver_with):
        state = make_state(effects=["exposed"])
        result = resolver_with(18).resolve(stealth_choice(dc=10), state)
        effects = result.new_game_state.status_effects
        assert StatusEffect.HIDDEN in effects
        assert StatusEffect.EXPOSED not in effects

    def test_stealth_failure_exposes(self, resolver_with):
        state = make_state(effects=["hidden"])
        result = resolver_with(1).resolve(stealth_choice(dc=12), state)
        assert result.new_game_state.status_effects == frozenset({StatusEffect.EXPOSED})
        assert result.consequences.status_effects_gained == frozenset({StatusEffect.EXPOSED})
        assert result.consequences.status_effects_lost == frozenset({StatusEffect.HIDDEN})

    def test_escape_success_clears_exposed(self, resolver_with):
        state = make_state(effects=["exposed"])
        result = resolver_with(18).resolve(escape_choice(dc=10), state)
        assert StatusEffect.EXPOSED not in result.new_game_state.status_effects

    def test_empowered_spent_in_combat(self, resolver_with):
        """Empowered adds +2 to the fight, then is gone."""
        state = make_state(effects=["empowered"])
        result = resolver_with(10).resolve(combat_choice(dc=12), state)
        assert result.roll.total == 12
        assert result.success is True
        assert StatusEffect.EMPOWERED not in result.new_game_state.status_effects

    def test_empowered_kept_outside_combat(self, resolver_with):
        state = make_state(effects=["empowered"])
        result = resolver_with(10).resolve(search_choice(dc=5), state)
        assert StatusEffect.EMPOWERED in result.new_game_state.status_effects

    def test_injured_persists(self, resolver_with):
        state = make_state(effects=["injured"])
        result = resolver_with(20).resolve(escape_choice(dc=5), state)
        assert StatusEffect.INJURED in result.new_game_state.status_effects


class TestCounters:
    """Tests for encounters, failure streaks and the turn."""

    def test_combat_counts_as_encounter(self, resolver_with, initial_state):
        result = resolver_with(15).resolve(combat_choice(dc=10), initial_state)
        assert result.new_game_state.encounter_count == 1

    def test_imminent_counts_as_encounter(self, resolver_with):
        state = make_state(presence=StalkerPresence.IMMINENT, encounters=2)
        result = resolver_with(15).resolve(search_choice(dc=10), state)
        assert result.new_game_state.encounter_count == 3

    def test_quiet_turn_is_not_an_encounter(self, resolver_with, initial_state):
        result = resolver_with(15).resolve(search_choice(dc=10), initial_state)
        assert result.new_game_state.encounter_count == 0

    def test_failure_streak(self, resolver_with):
        state = make_state(failed_rolls=2)
        result = resolver_with(1).resolve(search_choice(dc=12), state)
        assert result.new_game_state.failed_rolls_count == 3

    def test_success_resets_streak(self, resolver_with):
        state = make_state(failed_rolls=2)
        result = resolver_with(18).resolve(search_choice(dc=10), state)
        assert result.new_game_state.failed_rolls_count == 0

    def test_turn_advances_into_next_phase(self, resolver_with):
        state = make_state(turn=6)
        result = resolver_with(10).resolve(search_choice(), state)
        assert result.new_game_state.progress.current_turn == 7
        assert result.new_game_state.progress.time_of_night == TimeOfNight.MIDNIGHT

    def test_input_state_untouched(self, resolver_with):
        state = make_state(survival=70, tension=4)
        before = state.to_dict()
        resolver_with(1).resolve(combat_choice(dc=15, risk=-20), state)
        assert state.to_dict() == before


class TestInvariants:
    """Properties that hold for every roll."""

    @pytest.mark.parametrize("choice", [
        combat_choice(dc=20, risk=-30, reward=25),
        stealth_choice(dc=1, risk=-5, reward=5),
        escape_choice(dc=14, risk=-20, reward=15),
    ])
    def test_bounds_and_turn(self, rules, choice):
        states = [
            make_state(),
            make_state(survival=3, tension=10, presence=StalkerPresence.IMMINENT,
                       effects=["bleeding", "injured"], turn=29),
            make_state(survival=99, effects=["hidden", "empowered"], has_weapon=True, turn=12),
        ]
        for state in states:
            for roll in range(1, 21):
                new = Resolver(rules, FixedDice([roll])).resolve(choice, state).new_game_state
                assert 0 <= new.survival_score <= rules.score_max
                assert 0 <= new.tension <= rules.tension_max
                assert new.progress.current_turn == state.progress.current_turn + 1
                assert new.progress.time_of_night == time_of_night(new.progress.current_turn)


class TestInvalidInput:
    """The resolver fails fast on unsanitized choices."""

    def test_out_of_range_dc(self, resolver_with, initial_state):
        choice = Choice(text="x", dc=25, risk_factor=-10, reward_value=10, type=ActionType.SEARCH)
        with pytest.raises(InvalidChoiceError) as exc_info:
            resolver_with(10).resolve(choice, initial_state)
        assert exc_info.value.problems

    def test_invalid_choice_rolls_no_dice(self, rules, initial_state):
        dice = FixedDice([10])
        choice = Choice(text="x", dc=5, risk_factor=10, reward_value=10, type=ActionType.SEARCH)
        with pytest.raises(InvalidChoiceError):
            Resolver(rules, dice).resolve(choice, initial_state)
        assert dice.position == 0

    def test_is_a_value_error(self, resolver_with, initial_state):
        choice = Choice(text="x", dc=5, risk_factor=-10, reward_value=99, type=ActionType.SEARCH)
        with pytest.raises(ValueError):
            resolver_with(10).resolve(choice, initial_state)


class TestResolveAction:

    def test_convenience_function(self, initial_state):
        result = resolve_action(search_choice(dc=12), initial_state, dice=FixedDice([15]))
        assert result.success is True
        assert result.to_dict()["newGameState"]["progress"]["currentTurn"] == 2
