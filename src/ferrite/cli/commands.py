"""
Async implementations of the Ferrite commands.

The Typer layer in ``app.py`` parses flags and calls into these functions
through ``asyncio.run``.
"""

import logging
from pathlib import Path
from typing import List, Optional

from rich.table import Table

from ..config.settings import FerriteSettings
from ..core.client.errors import FerriteError
from ..core.client.messages import Message
from ..core.client.openai_client import OpenAIClient
from ..core.completion import Answer, Responder
from ..core.conversation import Conversation, seed_messages
from ..core.image import build_image_request, edit, edit_in_place, generate, is_safety_rejection
from ..core.models import ChatModel, filter_chat_models, filter_image_models, is_gpt_image_model
from ..core.session import SessionManager
from ..ui.console import AnswerPrinter, console, print_plain
from ..ui.prompts import TerminalPrompts
from .options import ChatOptions
from .repl import ChatRepl, ChatPrompts

logger = logging.getLogger(__name__)

SAFETY_REJECTION_MESSAGE = "編集が安全システムによって拒否されました。別のプロンプトを試してください。"


async def run_single_prompt(options: ChatOptions, prompt: str) -> Answer:
    """Send one prompt (fask, ftrans) and print the answer."""
    messages = seed_messages(options.model, options.system_prompt, options.context)
    messages.append(Message.user(prompt))

    async with OpenAIClient(options.settings.client_config()) as client:
        responder = Responder(client, options.model, options.mode, options.web)
        printer = AnswerPrinter(console)
        answer = await responder.respond(messages, printer.write)
        printer.finish(answer)
        return answer


async def run_chat(options: ChatOptions, prompts: Optional[ChatPrompts] = None) -> None:
    """Start the interactive chat loop."""
    conversation = Conversation(seed_messages(options.model, options.system_prompt, options.context))
    sessions = SessionManager(options.settings.resolved_sessions_dir)

    async with OpenAIClient(options.settings.client_config()) as client:
        repl = ChatRepl(
            client=client,
            responder=Responder(client, options.model, options.mode, options.web),
            conversation=conversation,
            sessions=sessions,
            prompts=prompts or TerminalPrompts(console),
        )
        logger.debug(f"Chatting with {options.model} ({options.mode.value}, web={options.web})")
        await repl.run()


async def run_models(settings: FerriteSettings, show_all: bool = False) -> List[str]:
    """List the chat models the API exposes."""
    async with OpenAIClient(settings.client_config()) as client:
        model_ids = await client.list_models()

    listed = sorted(model_ids) if show_all else filter_chat_models(model_ids)
    supported = {model.value for model in ChatModel}

    table = Table(title="Available Models", show_header=True, header_style="bold magenta")
    table.add_column("Model", style="cyan", no_wrap=True)
    table.add_column("Supported", style="green")
    for model_id in listed:
        table.add_row(model_id, "yes" if model_id in supported else "")
    console.print(table)
    return listed


async def choose_image_model(client: OpenAIClient, prompts: ChatPrompts) -> str:
    """Ask which image model to use among those the API lists."""
    choices = filter_image_models(await client.list_models())
    if len(choices) == 1:
        return choices[0]
    return choices[prompts.select("Select image model:", choices)]


async def run_image(
    settings: FerriteSettings,
    prompt: str,
    *,
    model: Optional[str] = None,
    image: Optional[Path] = None,
    mask: Optional[Path] = None,
    output: Optional[Path] = None,
    number: int = 1,
    size: str,
    response_format: str = "url",
    prompts: Optional[ChatPrompts] = None,
) -> List[Path]:
    """Generate or edit images and save them to disk."""
    prompts = prompts or TerminalPrompts(console)

    async with OpenAIClient(settings.client_config()) as client:
        model_id = model or await choose_image_model(client, prompts)
        request = build_image_request(model_id, prompt, number, size, response_format)
        logger.debug(f"Image request: {request.model_dump(exclude_none=True)}")

        if image is not None:
            paths = await edit(client, request, image, mask, output)
        else:
            paths = await generate(client, request, output)

        for path in paths:
            print_plain(f"Saved to {path}")

        if is_gpt_image_model(model_id) and paths:
            await edit_again(client, prompts, model_id, size, paths[0], mask)
        return paths


async def edit_again(
    client: OpenAIClient,
    prompts: ChatPrompts,
    model: str,
    size: str,
    path: Path,
    mask: Optional[Path] = None,
) -> None:
    """Offer further edits of ``path`` until declined or rejected."""
    while prompts.confirm("Edit generated image again?", default=False):
        edit_prompt = prompts.text("Edit prompt:")
        request = build_image_request(model, edit_prompt, 1, size, None)
        try:
            edited = await edit_in_place(client, request, path, mask)
        except FerriteError as e:
            if is_safety_rejection(e):
                print_plain(SAFETY_REJECTION_MESSAGE)
            else:
                print_plain(f"Error during edit: {e.message}")
            break

        if edited is None:
            print_plain("No edited image returned")
        else:
            print_plain(f"Edited image saved to {edited}")
