"""
Nightstalker CLI.

Commands:
  login      Set up the Anthropic API key
  logout     Remove the stored API key
  play       Play a night in the terminal
  simulate   Auto-play seeded games offline and report the endings
  rules      Print the active rules
"""

import argparse
import json
import logging
import random
import sys
from collections import Counter

from nightstalker.config import (
    check_auth_or_prompt,
    clear_api_key,
    get_config_path,
    get_rules_path,
    interactive_login,
)
from nightstalker.core.dice import RandomDice
from nightstalker.core.errors import RulesConfigError, SessionError
from nightstalker.core.game_over import ending_message
from nightstalker.core.rules_config import PRESETS, RulesConfig, get_preset, load_rules_file
from nightstalker.core.session import SessionController, TurnResult
from nightstalker.core.state import GameEnding
from nightstalker.llm.gateway import DEFAULT_MODEL, ClaudeGateway
from nightstalker.llm.storyteller import StoryTeller

STRATEGIES = ("first", "random", "safest", "boldest")


def load_rules(args) -> RulesConfig:
    """Rules from --rules, then --preset, then the configured file, then classic."""
    if getattr(args, "rules", None):
        return load_rules_file(args.rules)
    if getattr(args, "preset", None):
        return get_preset(args.preset)
    configured = get_rules_path()
    if configured:
        return load_rules_file(configured)
    return RulesConfig()


def login_cmd(args):
    """Interactive login to set up API key."""
    success = interactive_login()
    sys.exit(0 if success else 1)


def logout_cmd(args):
    """Remove stored API key."""
    clear_api_key()
    print(f"Logged out. API key removed from {get_config_path()}")


def rules_cmd(args):
    config = load_rules(args)
    if args.json:
        print(json.dumps(config.to_dict(), indent=2))
        return
    print(f"Rules: {config.name}")
    for key, value in config.to_dict().items():
        if key != "name":
            print(f"  {key}: {value}")


def _print_status(result: TurnResult):
    state = result.state
    effects = ", ".join(sorted(e.value for e in state.status_effects)) or "none"
    items = ", ".join(state.inventory) or "none"
    print(
        f"[Turn {state.progress.current_turn}/{state.progress.total_turns} | "
        f"{state.progress.time_of_night.value} | Survival {state.survival_score} | "
        f"Tension {state.tension}/10 | Stalker {state.stalker_presence.value}]"
    )
    print(f"[Effects: {effects} | Items: {items}]")


def _print_turn(result: TurnResult, debug: bool = False):
    if result.outcome_text:
        print(f"\n{result.outcome_text}")
    if debug and result.debug_info:
        print(json.dumps(result.debug_info, indent=2))
    print(f"\n{result.story}\n")
    if result.game_over:
        return
    _print_status(result)
    print()
    for number, choice in enumerate(result.choices, start=1):
        print(f"  {number}. {choice.text}  (dc {choice.dc}, {choice.type.value})")
    print()


def play_cmd(args):
    """Interactive play mode."""
    from nightstalker.cli.spinner import Spinner

    config = load_rules(args)

    story_teller = None
    if not args.offline:
        api_key = check_auth_or_prompt()
        if not api_key:
            print("\n  Cannot reach the storyteller without an API key.")
            print("  Run 'login', set ANTHROPIC_API_KEY, or play with --offline.")
            sys.exit(1)
        story_teller = StoryTeller(
            ClaudeGateway(api_key=api_key, model=args.model),
            prompt_version=args.prompt_version,
            config=config,
        )

    active_spinner = [None]

    def on_stage(stage_name: str):
        if active_spinner[0]:
            active_spinner[0].update(stage_name)

    session = SessionController(
        story_teller=story_teller,
        config=config,
        dice=RandomDice(args.seed),
        on_stage=on_stage,
    )
    debug_mode = args.debug

    print(f"\n{'=' * 60}")
    print(f"Nightstalker - survive until dawn ({config.name} rules)")
    print(f"{'=' * 60}")
    print("Pick a number, or 'quit' to exit. '/debug' toggles roll details.\n")

    with Spinner("The night stirs") as spinner:
        active_spinner[0] = spinner
        result = session.new_game()
    active_spinner[0] = None
    _print_turn(result)

    while not result.game_over:
        try:
            user_input = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            return

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit", "q", "/quit"):
            print("Goodbye!")
            return
        if user_input.lower() == "/debug":
            debug_mode = not debug_mode
            print(f"Debug mode: {'on' if debug_mode else 'off'}")
            continue
        if user_input.lower() == "/status":
            _print_status(result)
            continue

        try:
            index = int(user_input) - 1
        except ValueError:
            print(f"Enter a number from 1 to {len(result.choices)}.")
            continue

        try:
            with Spinner("Rolling") as spinner:
                active_spinner[0] = spinner
                result = session.choose(index)
        except SessionError as e:
            print(str(e))
            continue
        finally:
            active_spinner[0] = None
        _print_turn(result, debug=debug_mode)


def _pick(strategy: str, choices, rng: random.Random) -> int:
    if strategy == "random":
        return rng.randrange(len(choices))
    if strategy == "safest":
        return min(range(len(choices)), key=lambda i: choices[i].dc)
    if strategy == "boldest":
        return max(range(len(choices)), key=lambda i: choices[i].reward_value)
    return 0


def simulate_games(config: RulesConfig, games: int, seed: int = 0,
                   strategy: str = "first") -> list[TurnResult]:
    """
    Play whole games against the fallback choices and return each final turn.

    Game n uses seed + n for its dice, so a run is reproducible.
    """
    rng = random.Random(seed)
    finals = []
    for n in range(games):
        session = SessionController(config=config, dice=RandomDice(seed + n))
        result = session.new_game()
        while not result.game_over:
            result = session.choose(_pick(strategy, result.choices, rng))
        finals.append(result)
    return finals


def simulate_cmd(args):
    """Headless auto-play for balancing rules."""
    config = load_rules(args)
    finals = simulate_games(config, args.games, args.seed, args.strategy)

    endings = Counter(r.ending.value for r in finals)
    turns = [r.state.progress.current_turn for r in finals]

    if args.json:
        print(json.dumps({
            "rules": config.name,
            "strategy": args.strategy,
            "games": args.games,
            "endings": dict(endings),
            "average_turns": sum(turns) / len(turns) if turns else 0,
        }, indent=2))
        return

    print(f"Simulated {args.games} games ({config.name} rules, '{args.strategy}' strategy)")
    for ending, count in endings.most_common():
        print(f"  {ending:<9} {count:>5}  {ending_message(GameEnding(ending))}")
    if turns:
        print(f"  average length: {sum(turns) / len(turns):.1f} turns")


def _add_rules_args(parser):
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--rules", help="YAML rules file")
    group.add_argument("--preset", choices=sorted(PRESETS), help="Named rule set")


def build_parser():
    parser = argparse.ArgumentParser(
        description="Nightstalker - a horror survival game narrated by an LLM"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log debug output to stderr",
    )

    sub = parser.add_subparsers(dest="command")

    login_parser = sub.add_parser("login", help="Set up API key")
    login_parser.set_defaults(func=login_cmd)

    logout_parser = sub.add_parser("logout", help="Remove stored API key")
    logout_parser.set_defaults(func=logout_cmd)

    play_parser = sub.add_parser("play", help="Play a night in the terminal")
    _add_rules_args(play_parser)
    play_parser.add_argument("--offline", action="store_true",
                             help="Skip the storyteller and use the fallback segment")
    play_parser.add_argument("--seed", type=int, default=None, help="Dice seed")
    play_parser.add_argument("--model", default=DEFAULT_MODEL,
                             help="Claude model for the storyteller")
    play_parser.add_argument("--prompt-version", default=None,
                             help="Story prompt version (default: latest)")
    play_parser.add_argument("--debug", action="store_true",
                             help="Show roll details after each turn")
    play_parser.set_defaults(func=play_cmd)

    simulate_parser = sub.add_parser("simulate", help="Auto-play seeded games offline")
    _add_rules_args(simulate_parser)
    simulate_parser.add_argument("--games", "-n", type=int, default=100)
    simulate_parser.add_argument("--seed", type=int, default=0)
    simulate_parser.add_argument("--strategy", choices=STRATEGIES, default="first")
    simulate_parser.add_argument("--json", action="store_true", help="Output JSON")
    simulate_parser.set_defaults(func=simulate_cmd)

    rules_parser = sub.add_parser("rules", help="Print the active rules")
    _add_rules_args(rules_parser)
    rules_parser.add_argument("--json", action="store_true", help="Output JSON")
    rules_parser.set_defaults(func=rules_cmd)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return

    try:
        args.func(args)
    except RulesConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
