"""
Ferrite - a command-line client for OpenAI-compatible chat APIs.

This package provides the ``fchat``, ``fask``, ``ftrans`` and ``fimg``
commands: interactive chat, single-shot questions, translation and image
generation on top of the chat completions, responses and images endpoints.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from typing import Final

# Package metadata
VERSION: Final[str] = __version__
PACKAGE_NAME: Final[str] = "ferrite"
USER_AGENT: Final[str] = f"{PACKAGE_NAME}/{VERSION}"

__all__ = [
    "__version__",
    "VERSION",
    "PACKAGE_NAME",
    "USER_AGENT",
]
