"""
Model catalogue for Ferrite.

Chat commands accept a model from the fixed ``ChatModel`` enumeration. The
filter helpers apply the same selection rules to the live ``/models`` listing
of an API so new ids can be discovered with ``ferrite models``.
"""

from enum import Enum
from typing import Iterable, List, Union


UNKNOWN_MODEL_MESSAGE = (
    "Unknown Model. If a model does not exist to support it, please create an issue at "
    "github.com/n01e0/FerriteChatter/issues/new."
)


class ChatModel(str, Enum):
    """Chat-capable models selectable with ``-m/--model``."""
    GPT_3_5_TURBO = "gpt-3.5-turbo"
    GPT_3_5_TURBO_0125 = "gpt-3.5-turbo-0125"
    GPT_3_5_TURBO_1106 = "gpt-3.5-turbo-1106"
    GPT_3_5_TURBO_16K = "gpt-3.5-turbo-16k"
    GPT_3_5_TURBO_INSTRUCT = "gpt-3.5-turbo-instruct"
    GPT_4 = "gpt-4"
    GPT_4_0613 = "gpt-4-0613"
    GPT_4_TURBO = "gpt-4-turbo"
    GPT_4_TURBO_2024_04_09 = "gpt-4-turbo-2024-04-09"
    GPT_4_TURBO_PREVIEW = "gpt-4-turbo-preview"
    GPT_4O = "gpt-4o"
    GPT_4O_2024_08_06 = "gpt-4o-2024-08-06"
    GPT_4O_2024_11_20 = "gpt-4o-2024-11-20"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4O_SEARCH_PREVIEW = "gpt-4o-search-preview"
    GPT_4O_MINI_SEARCH_PREVIEW = "gpt-4o-mini-search-preview"
    CHATGPT_4O_LATEST = "chatgpt-4o-latest"
    GPT_4_1 = "gpt-4.1"
    GPT_4_1_MINI = "gpt-4.1-mini"
    GPT_4_1_NANO = "gpt-4.1-nano"
    GPT_5_CHAT_LATEST = "gpt-5-chat-latest"
    O1 = "o1"
    O1_MINI = "o1-mini"
    O1_PRO = "o1-pro"
    O3 = "o3"
    O3_MINI = "o3-mini"
    O4_MINI = "o4-mini"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union[str, "ChatModel"]) -> "ChatModel":
        """Resolve a model id, raising ``ValueError`` for ids outside the catalogue."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            raise ValueError(UNKNOWN_MODEL_MESSAGE) from None

    @property
    def uses_system_role(self) -> bool:
        """o1 models reject the system role; the seed prompt goes in as a user message."""
        return not self.value.startswith("o1")


DEFAULT_MODEL = ChatModel.GPT_4O

# Image endpoints
DEFAULT_IMAGE_MODEL = "dall-e-2"
DEFAULT_IMAGE_EDIT_MODEL = "gpt-image-1"
DEFAULT_IMAGE_SIZE = "1024x1024"


def is_chat_model_id(model_id: str) -> bool:
    """Apply the chat-model selection rules to a single API model id."""
    if not any(marker in model_id for marker in ("gpt", "o1", "o3", "o4")):
        return False
    if "audio" in model_id or "realtime" in model_id:
        return False
    if "gpt-5" in model_id and model_id != "gpt-5-chat-latest":
        return False
    if model_id.startswith("gpt-image-"):
        return False
    return True


def filter_chat_models(model_ids: Iterable[str]) -> List[str]:
    """Keep the chat-capable ids from an API model listing, sorted."""
    return sorted(model_id for model_id in model_ids if is_chat_model_id(model_id))


def filter_image_models(model_ids: Iterable[str]) -> List[str]:
    """Keep DALL-E and GPT Image ids, falling back to the default image model."""
    choices = [
        model_id for model_id in model_ids
        if "dall" in model_id or model_id.startswith("gpt-image")
    ]
    return choices or [DEFAULT_IMAGE_MODEL]


def is_gpt_image_model(model_id: str) -> bool:
    """GPT Image models do not accept ``response_format``."""
    return model_id.startswith("gpt-image")
