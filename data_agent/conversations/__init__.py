"""Conversation history."""

from data_agent.conversations.store import ConversationStore

__all__ = ["ConversationStore"]
