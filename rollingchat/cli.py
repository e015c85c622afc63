"""Interactive command line chat for rollingchat.

Reads one line of user text per turn, asks the model, and prints the reply.
A failed turn is reported and the session goes on.
"""

import argparse
import logging
import subprocess
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from rollingchat.app_config import AppConfig, build_app_config
from rollingchat.backends.base import Usage
from rollingchat.client import ChatClient
from rollingchat.errors import ChatError, ConfigError

logger = logging.getLogger(__name__)


def format_usage(usage: Usage) -> str:
    """Format usage as ``in (cached in) / out (reasoning)``."""
    return (
        f"{usage.prompt_tokens} ({usage.cached_tokens or 0}) / "
        f"{usage.completion_tokens} ({usage.reasoning_tokens or 0})"
    )


def copy_to_clipboard(text: str) -> None:
    """Copy text to the clipboard with ``xclip``.

    Raises:
        RuntimeError: If ``xclip`` cannot be started or returns an error.
    """
    try:
        result = subprocess.run(
            ["xclip", "-selection", "clipboard"],
            input=text.encode(),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as e:
        raise RuntimeError(f"Failed to spawn `xclip`: {e}") from e

    if result.returncode != 0:
        error = result.stderr.decode(errors="replace").strip()
        raise RuntimeError(f"`xclip` returned an error: {error}")


class ChatSession:
    """One interactive conversation bound to a ``ChatClient``."""

    def __init__(
        self,
        client: ChatClient,
        *,
        xclip: bool = False,
        show_token_usage: bool = False,
        show_reasoning: bool = False,
        console: Console | None = None,
        error_console: Console | None = None,
    ) -> None:
        self.client = client
        self.xclip = xclip
        self.show_token_usage = show_token_usage
        self.show_reasoning = show_reasoning
        self.console = console or Console(highlight=False)
        self.error_console = error_console or Console(stderr=True, highlight=False)

    def print_prompt(self) -> None:
        self.console.print(Text("You:", style="bold red"), end=" ")

    def print_error(self, error: object) -> None:
        self.error_console.print(Text.assemble(("Error:", "yellow"), " ", (str(error), "yellow")))

    def handle_line(self, line: str) -> bool:
        """Ask the model one question and print the outcome.

        Args:
            line: User input.

        Returns:
            True if a reply was received, False otherwise.
        """
        if not line.strip():
            return False

        try:
            reply, usage, reasoning = self.client.ask(line)
        except ChatError as e:
            logger.debug("Turn failed", exc_info=True)
            self.print_error(e)
            return False

        if self.show_reasoning and reasoning:
            self.console.print()
            self.console.print(Text.assemble(("Reasoning:", "bold blue"), " ", reasoning.strip()))

        self.console.print()
        self.console.print(Text.assemble(("Assistant:", "bold green"), " ", reply))
        self.console.print()

        if self.xclip:
            try:
                copy_to_clipboard(reply)
            except RuntimeError as e:
                self.print_error(e)

        if self.show_token_usage:
            self.console.print(Text(format_usage(usage), style="blue"))
            self.console.print()

        return True

    def run(self, lines=None) -> None:
        """Run the loop until input ends.

        Args:
            lines: Iterable of input lines. Defaults to stdin.
        """
        if lines is None:
            lines = sys.stdin

        self.print_prompt()
        for line in lines:
            self.handle_line(line.rstrip("\n"))
            self.print_prompt()
        self.console.print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rollingchat",
        description="Chatbot API CLI. Supports OpenAI chat completions API, "
        "including OpenAI, Azure, and OpenRouter flavors.",
        epilog="You can only set API key/token in the config. "
        "Command line options override the ones in the config.",
    )

    parser.add_argument(
        "-a", "--api",
        choices=["openai", "azure", "openrouter"],
        default=None,
        help="API flavor (default: openai). Azure requires `api_key` in the config",
    )
    parser.add_argument(
        "-u", "--api-url",
        default=None,
        help="Base API url (default: https://api.openai.com/v1/)",
    )
    parser.add_argument(
        "--api-version",
        default=None,
        help="API version GET parameter used by Azure",
    )
    parser.add_argument(
        "-m", "--model",
        default=None,
        help="Model (default: gpt-4o-mini)",
    )
    parser.add_argument(
        "-s", "--system-message",
        default=None,
        help="System message to initialize the model. Empty string disables the system message",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Config file location (default: $HOME/.config/rollingchat.toml)",
    )
    parser.add_argument(
        "-x", "--xclip",
        action="store_true",
        help="Use `xclip` to copy every response to clipboard",
    )
    parser.add_argument(
        "-g", "--show-token-usage",
        action="store_true",
        help="Show tokens used: input (cached input) / output (reasoning)",
    )
    parser.add_argument(
        "-r", "--show-reasoning",
        action="store_true",
        help="Show reasoning (summary) performed by the model, when the API returns it",
    )

    reasoning = parser.add_mutually_exclusive_group()
    reasoning.add_argument(
        "-e", "--reasoning-effort",
        default=None,
        help="Reasoning effort: none, minimal, low, medium, or high",
    )
    reasoning.add_argument(
        "-b", "--reasoning-budget",
        type=int,
        default=None,
        help="Reasoning budget in tokens. Only supported by OpenRouter API",
    )

    parser.add_argument(
        "-v", "--verbosity",
        default=None,
        help="Verbosity of the answers: low, medium, or high",
    )
    parser.add_argument(
        "-n", "--min-history-tokens",
        type=int,
        default=None,
        help="Keep at least that many tokens of history in the context, "
        "but no more than one request-response round above it",
    )
    parser.add_argument(
        "-t", "--max-history-tokens",
        type=int,
        default=None,
        help="Keep at most that many tokens of history in the context",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log requests and responses to stderr",
    )

    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        config: AppConfig = build_app_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    with ChatClient(config.client) as client:
        session = ChatSession(
            client,
            xclip=config.xclip,
            show_token_usage=config.show_token_usage,
            show_reasoning=config.show_reasoning,
        )
        try:
            session.run()
        except KeyboardInterrupt:
            session.console.print()


if __name__ == "__main__":
    main()
