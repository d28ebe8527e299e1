"""
Options and helpers shared by the fchat, fask, ftrans and fimg commands.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import logging
import sys
from typing import Iterator, Optional, TextIO

import typer

from .. import VERSION
from ..config.settings import FerriteSettings
from ..core.client.errors import (
    ConfigurationError,
    FerriteError,
    InvalidRequestError,
    create_user_friendly_message,
)
from ..core.completion import ResponseMode
from ..core.conversation import read_context_file
from ..core.models import ChatModel
from ..ui.console import console, print_error
from ..utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


class ImageFormat(str, Enum):
    URL = "url"
    B64_JSON = "b64_json"


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(f"[bold blue]Ferrite[/bold blue] version [green]{VERSION}[/green]")
        raise typer.Exit()


# Option factories, so every command gets its own OptionInfo

def general_option():
    return typer.Option(None, "--general", "-g", help="System prompt (general prompt)")


def key_option():
    return typer.Option(None, "--key", "-k", help="OpenAI API key")


def model_option():
    return typer.Option(None, "--model", "-m", help="Chat model, e.g. gpt-4o, gpt-4.1, o3-mini")


def file_option():
    return typer.Option(
        None, "--file", "-f", exists=True, dir_okay=False,
        help="Context file sent before the first prompt",
    )


def base_url_option():
    return typer.Option(None, "--base-url", "-b", help="OpenAI API base URL")


def response_mode_option():
    return typer.Option(
        None, "--response-mode", "-r", case_sensitive=False,
        help="Print the answer as it streams in or all at once",
    )


def web_option():
    return typer.Option(False, "--web", help="Answer with web search and list the sources")


def verbose_option():
    return typer.Option(False, "--verbose", "-v", help="Debug logging to stderr")


def version_option():
    return typer.Option(
        None, "--version", callback=version_callback, is_eager=True,
        help="Show version and exit",
    )


@dataclass
class ChatOptions:
    """Resolved chat flags common to fchat, fask and ftrans."""
    settings: FerriteSettings
    model: ChatModel
    mode: ResponseMode
    web: bool = False
    system_prompt: Optional[str] = None
    context: Optional[str] = None


def load_settings(
    key: Optional[str] = None,
    base_url: Optional[str] = None,
    verbose: bool = False,
) -> FerriteSettings:
    """Resolve settings with CLI flags on top and configure logging."""
    setup_logging("DEBUG" if verbose else "WARNING")
    settings = FerriteSettings.load(
        openai_api_key=key,
        openai_base_url=base_url,
        log_level="DEBUG" if verbose else None,
    )
    setup_logging(settings.log_level)
    logger.debug(f"Settings: {settings.to_dict()}")
    return settings


def resolve_model(model: Optional[str], settings: FerriteSettings) -> ChatModel:
    if model is None:
        return settings.default_model
    try:
        return ChatModel.parse(model)
    except ValueError as e:
        raise ConfigurationError(str(e), config_field="model", original_error=e)


def build_chat_options(
    *,
    general: Optional[str],
    key: Optional[str],
    model: Optional[str],
    file: Optional[Path],
    base_url: Optional[str],
    response_mode: Optional[ResponseMode],
    web: bool,
    verbose: bool,
    default_mode: ResponseMode,
    default_prompt: Optional[str] = None,
) -> ChatOptions:
    settings = load_settings(key, base_url, verbose)
    settings.require_api_key()
    return ChatOptions(
        settings=settings,
        model=resolve_model(model, settings),
        mode=response_mode or default_mode,
        web=web,
        system_prompt=general if general is not None else default_prompt,
        context=read_context_file(file) if file is not None else None,
    )


def read_piped_stdin(stream: Optional[TextIO] = None) -> Optional[str]:
    """Text piped into the command, or None when stdin is a terminal."""
    stream = stream or sys.stdin
    if stream is None or stream.isatty():
        return None
    return stream.read()


def collect_prompt(
    argument: Optional[str],
    combine: bool = False,
    stream: Optional[TextIO] = None,
) -> str:
    """
    Prompt text from the positional argument and/or piped stdin.

    With ``combine`` both are sent as ``argument``, a blank line, then the
    stdin text. Otherwise the argument wins and stdin is the fallback.
    """
    piped = None
    if combine or argument is None:
        piped = read_piped_stdin(stream)
        if piped is not None:
            piped = piped.rstrip()

    if argument is not None and piped:
        prompt = f"{argument}\n\n{piped}" if combine else argument
    elif argument is not None:
        prompt = argument
    else:
        prompt = piped or ""

    if not prompt.strip():
        raise InvalidRequestError("Prompt must be provided as argument or via pipe")
    return prompt


@contextmanager
def error_boundary() -> Iterator[None]:
    """Print FerriteErrors as ``Error: ...`` and exit with status 1."""
    try:
        yield
    except FerriteError as e:
        logger.debug(f"Command failed: {e!r}", exc_info=e)
        print_error(e.message, create_user_friendly_message(e))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print()
        raise typer.Exit(130)


