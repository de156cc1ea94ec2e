"""
Model access for PantryPal.

Agents talk to an LLMProvider and never to the SDK directly:
- AnthropicProvider sends requests through the anthropic client
- NullLLMProvider answers every request with fixed text, for tests and
  for running without an API key

Both return Anthropic-shaped message responses; ``create_text`` is the
single-prompt shortcut the agents use.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

NULL_REPLY = "[NullLLM: No real LLM call made]"


@dataclass
class CannedTextBlock:
    text: str
    type: str = "text"


@dataclass
class CannedReply:
    """Stand-in for an anthropic Message with only text content."""
    content: List[CannedTextBlock] = field(default_factory=list)
    stop_reason: str = "end_turn"
    model: str = "null-llm"


class LLMProvider(ABC):
    """Something that can answer a list of chat messages."""

    @property
    @abstractmethod
    def is_null(self) -> bool:
        """True when no real model is behind this provider."""

    @abstractmethod
    def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: List[Dict[str, Any]],
        system: Optional[str] = None,
        **kwargs
    ) -> Any:
        """Send a messages request and return the raw response."""

    def create_text(
        self,
        model: str,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1024,
        **kwargs
    ) -> str:
        """
        Send one user prompt and return the reply text.

        Args:
            model: Model name
            prompt: User message content
            system: Optional system prompt
            max_tokens: Reply length limit
            **kwargs: Extra request parameters (e.g. temperature)

        Returns:
            The text blocks of the reply joined together ("" if none)
        """
        response = self.create_message(
            model=model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            system=system,
            **kwargs
        )
        blocks = getattr(response, "content", None) or []
        return "".join(block.text for block in blocks if getattr(block, "type", None) == "text")


class AnthropicProvider(LLMProvider):
    """Provider backed by the Anthropic API."""

    def __init__(self, api_key: Optional[str] = None):
        from anthropic import Anthropic

        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY required for AnthropicProvider")
        self.client = Anthropic(api_key=api_key)

    @property
    def is_null(self) -> bool:
        return False

    def create_message(self, model, max_tokens, messages, system=None, **kwargs):
        request = dict(model=model, max_tokens=max_tokens, messages=messages, **kwargs)
        if system:
            request["system"] = system
        logger.debug(f"Anthropic request: model={model}, messages={len(messages)}")
        return self.client.messages.create(**request)


class NullLLMProvider(LLMProvider):
    """
    Provider that never calls a model.

    Every request gets the same reply (``response_text`` if given). The last
    request is kept on the instance so tests can check what was sent.
    """

    def __init__(self, response_text: Optional[str] = None):
        self.reply = response_text or NULL_REPLY
        self.call_count = 0
        self.last_model: Optional[str] = None
        self.last_system: Optional[str] = None
        self.last_messages: Optional[List[Dict[str, Any]]] = None
        logger.info("NullLLMProvider in use - replies are canned")

    @property
    def is_null(self) -> bool:
        return True

    def create_message(self, model, max_tokens, messages, system=None, **kwargs) -> CannedReply:
        self.call_count += 1
        self.last_model = model
        self.last_system = system
        self.last_messages = messages
        return CannedReply(content=[CannedTextBlock(text=self.reply)])


def get_llm_provider(api_key: Optional[str] = None, use_null: bool = False) -> LLMProvider:
    """
    Pick a provider.

    NullLLMProvider is used when ``use_null`` is set, when USE_NULL_LLM=true,
    or when no API key is available (with a warning); otherwise
    AnthropicProvider.
    """
    if use_null or os.environ.get("USE_NULL_LLM", "").lower() == "true":
        return NullLLMProvider()

    api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        logger.warning("No ANTHROPIC_API_KEY found, using NullLLMProvider")
        return NullLLMProvider()

    return AnthropicProvider(api_key=api_key)
