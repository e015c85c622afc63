"""Backend implementations for chat completion APIs."""

from rollingchat.backends.base import ChatBackend, Completion, Message, Role, Usage
from rollingchat.backends.openai import OpenAIChatBackend

__all__ = ["ChatBackend", "Completion", "Message", "Role", "Usage", "OpenAIChatBackend"]
