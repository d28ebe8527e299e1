"""
Main CLI application entry point.

This module contains the ``ferrite`` Typer application and the single-command
applications installed as ``fchat``, ``fask``, ``ftrans`` and ``fimg``.
"""

from pathlib import Path
from typing import Optional
import asyncio

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config.loader import ConfigFileLoader, config_search_path, user_config_dir
from ..config.settings import ENV_FILE_NAME
from ..core.completion import ResponseMode
from ..core.conversation import SEED_PROMPT, TRANSLATE_PROMPT
from ..core.models import DEFAULT_IMAGE_SIZE
from ..ui.console import console
from . import commands
from .options import (
    ImageFormat,
    base_url_option,
    build_chat_options,
    collect_prompt,
    error_boundary,
    file_option,
    general_option,
    key_option,
    load_settings,
    model_option,
    response_mode_option,
    verbose_option,
    version_callback,
    version_option,
    web_option,
)

# Create the main Typer application
app = typer.Typer(
    name="ferrite",
    help="Ferrite - chat with OpenAI models from the command line",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.callback()
def main_callback(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    Ferrite - chat with OpenAI models from the command line.

    Use [cyan]chat[/cyan] for a conversation, [cyan]ask[/cyan] for a single
    question, [cyan]trans[/cyan] to translate and [cyan]img[/cyan] for images.
    """
    pass


@app.command("chat")
def chat_command(
    general: Optional[str] = general_option(),
    key: Optional[str] = key_option(),
    model: Optional[str] = model_option(),
    file: Optional[Path] = file_option(),
    base_url: Optional[str] = base_url_option(),
    response_mode: Optional[ResponseMode] = response_mode_option(),
    web: bool = web_option(),
    verbose: bool = verbose_option(),
    version: Optional[bool] = version_option(),
) -> None:
    """Start an interactive chat. Type /help for commands."""
    with error_boundary():
        options = build_chat_options(
            general=general, key=key, model=model, file=file, base_url=base_url,
            response_mode=response_mode, web=web, verbose=verbose,
            default_mode=ResponseMode.STREAM, default_prompt=SEED_PROMPT,
        )
        asyncio.run(commands.run_chat(options))


@app.command("ask")
def ask_command(
    prompt: Optional[str] = typer.Argument(None, help="Question; piped stdin is appended"),
    general: Optional[str] = general_option(),
    key: Optional[str] = key_option(),
    model: Optional[str] = model_option(),
    file: Optional[Path] = file_option(),
    base_url: Optional[str] = base_url_option(),
    response_mode: Optional[ResponseMode] = response_mode_option(),
    web: bool = web_option(),
    verbose: bool = verbose_option(),
    version: Optional[bool] = version_option(),
) -> None:
    """Ask a single question and print the answer."""
    with error_boundary():
        options = build_chat_options(
            general=general, key=key, model=model, file=file, base_url=base_url,
            response_mode=response_mode, web=web, verbose=verbose,
            default_mode=ResponseMode.BATCH,
        )
        text = collect_prompt(prompt, combine=True)
        asyncio.run(commands.run_single_prompt(options, text))


@app.command("trans")
def trans_command(
    prompt: Optional[str] = typer.Argument(None, help="Text to translate; read from stdin when omitted"),
    general: Optional[str] = general_option(),
    key: Optional[str] = key_option(),
    model: Optional[str] = model_option(),
    file: Optional[Path] = file_option(),
    base_url: Optional[str] = base_url_option(),
    response_mode: Optional[ResponseMode] = response_mode_option(),
    web: bool = web_option(),
    verbose: bool = verbose_option(),
    version: Optional[bool] = version_option(),
) -> None:
    """Translate Japanese to English and anything else to Japanese."""
    with error_boundary():
        options = build_chat_options(
            general=general, key=key, model=model, file=file, base_url=base_url,
            response_mode=response_mode, web=web, verbose=verbose,
            default_mode=ResponseMode.BATCH, default_prompt=TRANSLATE_PROMPT,
        )
        text = collect_prompt(prompt)
        asyncio.run(commands.run_single_prompt(options, text))


@app.command("img")
def img_command(
    prompt: Optional[str] = typer.Argument(None, help="Image prompt; read from stdin when omitted"),
    key: Optional[str] = key_option(),
    base_url: Optional[str] = base_url_option(),
    model: Optional[str] = typer.Option(
        None, "--model", "-m", help="Image model, e.g. dall-e-3 or gpt-image-1 (asked when omitted)",
    ),
    image: Optional[Path] = typer.Option(
        None, "--image", "-i", exists=True, dir_okay=False, help="Existing image to edit",
    ),
    mask: Optional[Path] = typer.Option(
        None, "--mask", "-M", exists=True, dir_okay=False, help="Mask image for editing (PNG with transparency)",
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default fimg.png)"),
    number: int = typer.Option(1, "--number", "-n", min=1, help="Number of images"),
    size: str = typer.Option(DEFAULT_IMAGE_SIZE, "--size", "-s", help="Image size, e.g. 1024x1024"),
    response_format: ImageFormat = typer.Option(
        ImageFormat.URL, "--format", "-f", case_sensitive=False, help="Response format",
    ),
    verbose: bool = verbose_option(),
    version: Optional[bool] = version_option(),
) -> None:
    """Generate images, or edit one with --image."""
    with error_boundary():
        settings = load_settings(key, base_url, verbose)
        settings.require_api_key()
        text = collect_prompt(prompt)
        asyncio.run(commands.run_image(
            settings,
            text,
            model=model,
            image=image,
            mask=mask,
            output=output,
            number=number,
            size=size,
            response_format=response_format.value,
        ))


@app.command("models")
def models_command(
    show_all: bool = typer.Option(False, "--all", "-a", help="List every model, not only chat models"),
    key: Optional[str] = key_option(),
    base_url: Optional[str] = base_url_option(),
    verbose: bool = verbose_option(),
) -> None:
    """List the chat models the API offers."""
    with error_boundary():
        settings = load_settings(key, base_url, verbose)
        asyncio.run(commands.run_models(settings, show_all))


@app.command("config")
def config_command(
    show: bool = typer.Option(False, "--show", "-s", help="Show current configuration"),
    show_sources: bool = typer.Option(False, "--sources", help="Show configuration sources"),
    init: bool = typer.Option(False, "--init", help="Write a starter config file"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file with --init"),
    verbose: bool = verbose_option(),
) -> None:
    """Inspect or initialize the Ferrite configuration."""
    with error_boundary():
        if init:
            path = ConfigFileLoader().write_template(force=force)
            console.print(f"[green]Created[/green] {escape(str(path))}")
            return

        settings = load_settings(verbose=verbose)

        if show_sources:
            _show_config_sources(settings)
            return

        if show:
            _show_current_config(settings)
            return

        # Default: show help
        console.print("[yellow]Use one of the following options:[/yellow]")
        console.print("  --show         Show current configuration")
        console.print("  --sources      Show configuration sources and files")
        console.print("  --init         Write a starter config file")


def _show_current_config(settings) -> None:
    """Show current configuration values."""
    table = Table(title="Current Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Source", style="dim")

    values = settings.to_dict()
    values["openai_base_url"] = settings.base_url
    values["sessions_dir"] = str(settings.resolved_sessions_dir)
    sources = settings.sources
    for key, value in values.items():
        source = sources.get(key)
        table.add_row(key, escape(str(value)), source.value if source else "default")

    console.print(table)


def _show_config_sources(settings) -> None:
    """Show configuration files and whether they exist."""
    table = Table(title="Configuration Sources", show_header=True, header_style="bold magenta")
    table.add_column("Path", style="yellow")
    table.add_column("Exists", style="green")
    table.add_column("Used", style="blue")

    active = settings.config_file.path if settings.config_file and settings.config_file.exists else None
    for path in config_search_path():
        table.add_row(
            escape(str(path)),
            "✓" if path.is_file() else "✗",
            "✓" if active == path else "",
        )
    console.print(table)

    env_file = user_config_dir() / ENV_FILE_NAME
    console.print(Panel(
        f"Environment File: {escape(str(env_file)) if env_file.is_file() else 'None found'}\n"
        f"Sessions: {escape(str(settings.resolved_sessions_dir))}",
        title="Environment Configuration",
        border_style="blue",
    ))


def _single_command_app(name: str, command) -> typer.Typer:
    single = typer.Typer(name=name, add_completion=False, rich_markup_mode="rich")
    single.command(name=name)(command)
    return single


fchat_app = _single_command_app("fchat", chat_command)
fask_app = _single_command_app("fask", ask_command)
ftrans_app = _single_command_app("ftrans", trans_command)
fimg_app = _single_command_app("fimg", img_command)


def main() -> None:
    app()


def fchat_main() -> None:
    fchat_app()


def fask_main() -> None:
    fask_app()


def ftrans_main() -> None:
    ftrans_app()


def fimg_main() -> None:
    fimg_app()


if __name__ == "__main__":
    main()
