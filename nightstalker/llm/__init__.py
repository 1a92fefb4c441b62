"""LLM module for the gateway, prompts and the storyteller."""

from .gateway import (
    LLMGateway,
    ClaudeGateway,
    MockGateway,
    LLMResponse,
    LLMError,
    create_gateway,
    load_schema
)
from .prompt_registry import PromptRegistry, PromptTemplate
from .storyteller import Message, StoryResponse, StoryTeller, state_summary

__all__ = [
    "LLMGateway",
    "ClaudeGateway",
    "MockGateway",
    "LLMResponse",
    "LLMError",
    "create_gateway",
    "load_schema",
    "PromptRegistry",
    "PromptTemplate",
    "Message",
    "StoryResponse",
    "StoryTeller",
    "state_summary",
]
