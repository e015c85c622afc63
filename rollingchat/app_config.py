"""Configuration of the ``rollingchat`` command line interface.

Values come from a TOML config file, overridden by command line options.
Credentials can only be set in the file.
"""

import argparse
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rollingchat.auth import auth_from_credentials
from rollingchat.config import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT, DEFAULT_MODEL, ChatClientConfig
from rollingchat.errors import ConfigError


HOME_CONFIG_LOCATION = Path(".config") / "rollingchat.toml"

# Keys accepted in the config file, with their expected types
CONFIG_KEYS: dict[str, tuple[type, ...]] = {
    "api_url": (str,),
    "api": (str,),
    "api_version": (str,),
    "api_key": (str,),
    "api_token": (str,),
    "timeout": (int, float),
    "model": (str,),
    "system_message": (str,),
    "min_history_tokens": (int,),
    "max_history_tokens": (int,),
    "reasoning_effort": (str,),
    "reasoning_budget": (int,),
    "verbosity": (str,),
    "xclip": (bool,),
    "show_token_usage": (bool,),
    "show_reasoning": (bool,),
}


@dataclass(frozen=True)
class AppConfig:
    """Everything the CLI needs: the client config plus display options."""

    client: ChatClientConfig
    xclip: bool = False
    show_token_usage: bool = False
    show_reasoning: bool = False


def default_config_path() -> Path:
    return Path.home() / HOME_CONFIG_LOCATION


def load_config_file(path: Path) -> dict[str, Any]:
    """Read and validate a TOML config file.

    Args:
        path: Config file location.

    Returns:
        Parsed key/value pairs.

    Raises:
        ConfigError: If the file cannot be read, is not valid TOML, or has
            unknown keys or values of the wrong type.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse config file {path}: {e}") from e

    for key, value in data.items():
        expected = CONFIG_KEYS.get(key)
        if expected is None:
            raise ConfigError(f"Unknown key `{key}` in config file {path}")
        # bool is an int subclass, do not accept it for numeric keys
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
            raise ConfigError(f"Invalid value for `{key}` in config file {path}")

    return data


def build_app_config(args: argparse.Namespace) -> AppConfig:
    """Merge the config file with command line options.

    Args:
        args: Parsed command line arguments.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the merged configuration is invalid.
    """
    path = Path(args.config) if args.config else default_config_path()
    file = load_config_file(path)

    def pick(name: str, default: Any = None) -> Any:
        value = getattr(args, name, None)
        if value is not None:
            return value
        return file.get(name, default)

    auth = auth_from_credentials(
        file.get("api_token"),
        file.get("api_key"),
        api=pick("api", "openai"),
        api_version=pick("api_version"),
    )

    # An empty system message on the command line disables the one from the file
    system_message = args.system_message
    if system_message is None:
        system_message = file.get("system_message")

    # Effort and budget exclude each other; the command line choice wins
    reasoning_effort = pick("reasoning_effort")
    reasoning_budget = pick("reasoning_budget")
    if args.reasoning_budget is not None:
        reasoning_effort = None
    elif args.reasoning_effort is not None:
        reasoning_budget = None

    client = ChatClientConfig(
        auth=auth,
        api_url=pick("api_url", DEFAULT_API_URL),
        model=pick("model", DEFAULT_MODEL),
        system_message=system_message or None,
        min_history_tokens=pick("min_history_tokens"),
        max_history_tokens=pick("max_history_tokens"),
        reasoning_effort=reasoning_effort,
        reasoning_budget=reasoning_budget,
        verbosity=pick("verbosity"),
        include_reasoning=bool(args.show_reasoning or file.get("show_reasoning", False)),
        http_timeout=float(file.get("timeout", DEFAULT_HTTP_TIMEOUT)),
    )

    return AppConfig(
        client=client,
        xclip=bool(args.xclip or file.get("xclip", False)),
        show_token_usage=bool(args.show_token_usage or file.get("show_token_usage", False)),
        show_reasoning=bool(args.show_reasoning or file.get("show_reasoning", False)),
    )
