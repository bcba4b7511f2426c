"""Prompt templates and loader."""

from data_agent.prompts.loader import PromptLoader

__all__ = ["PromptLoader"]
