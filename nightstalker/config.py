"""
User configuration for Nightstalker.

One JSON file under the XDG config dir holds the Anthropic API key and,
optionally, the rules file to play with. Environment variables override
the file: ANTHROPIC_API_KEY for the key, NIGHTSTALKER_RULES for the rules.
"""

import json
import os
from pathlib import Path
from typing import Optional

from .llm.gateway import DEFAULT_MODEL

API_KEY_ENTRY = "anthropic_api_key"
RULES_ENTRY = "rules_file"


def get_config_dir() -> Path:
    """$XDG_CONFIG_HOME/nightstalker, created on first use."""
    base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    config_dir = base / "nightstalker"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def load_config() -> dict:
    """Stored settings. A missing or unreadable file counts as empty."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict) -> None:
    path = get_config_path()
    with open(path, "w") as f:
        json.dump(config, f, indent=2)
    # The file holds an API key
    os.chmod(path, 0o600)


def _update_config(**changes) -> None:
    """Apply changes to the stored settings; None removes an entry."""
    config = load_config()
    for key, value in changes.items():
        if value is None:
            config.pop(key, None)
        else:
            config[key] = value
    save_config(config)


def get_api_key() -> Optional[str]:
    return os.environ.get("ANTHROPIC_API_KEY") or load_config().get(API_KEY_ENTRY)


def set_api_key(api_key: str) -> None:
    _update_config(**{API_KEY_ENTRY: api_key})


def clear_api_key() -> None:
    _update_config(**{API_KEY_ENTRY: None})


def get_rules_path() -> Optional[Path]:
    """Rules file to play with, if one is configured."""
    value = os.environ.get("NIGHTSTALKER_RULES") or load_config().get(RULES_ENTRY)
    return Path(value).expanduser() if value else None


def mask_key(api_key: str) -> str:
    if len(api_key) <= 12:
        return "*" * len(api_key)
    return f"{api_key[:8]}...{api_key[-4:]}"


def validate_api_key(api_key: str) -> tuple[bool, str]:
    """
    Check a key with the smallest possible request.

    Returns:
        (is_valid, message)
    """
    import anthropic

    try:
        anthropic.Anthropic(api_key=api_key).messages.create(
            model=DEFAULT_MODEL,
            max_tokens=1,
            messages=[{"role": "user", "content": "ping"}],
        )
    except anthropic.AuthenticationError:
        return False, "The key was rejected"
    except anthropic.RateLimitError:
        return True, "Key accepted (currently rate limited)"
    except anthropic.APIError as e:
        return False, f"Could not validate the key: {e}"
    return True, "Key accepted"


def interactive_login() -> bool:
    """
    Prompt for an API key, validate it and store it.

    Returns:
        True when a usable key is stored afterwards
    """
    print("\n  Nightstalker needs an Anthropic API key to reach the storyteller.")

    current = get_api_key()
    if current:
        print(f"  Current key: {mask_key(current)}")
        if input("  Replace it? [y/N] ").strip().lower() not in ("y", "yes"):
            return True

    print("  Create a key at https://console.anthropic.com/settings/keys\n")
    try:
        api_key = input("  API key: ").strip()
    except (KeyboardInterrupt, EOFError):
        print("\n  Cancelled.")
        return False
    if not api_key:
        print("  No key entered.")
        return False

    print("  Checking...", end=" ", flush=True)
    ok, message = validate_api_key(api_key)
    print(message)
    if not ok:
        return False

    set_api_key(api_key)
    print(f"  Saved to {get_config_path()}")
    return True


def check_auth_or_prompt() -> Optional[str]:
    """
    Return the API key, offering the login flow when none is set.

    Returns None when the user declines.
    """
    api_key = get_api_key()
    if api_key:
        return api_key

    answer = input("\n  No API key found. Set one up now? [Y/n] ").strip().lower()
    if answer in ("", "y", "yes") and interactive_login():
        return get_api_key()
    return None
