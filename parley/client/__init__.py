"""Client for the remote extraction and scoring service."""

from parley.client.client import HttpConversationService
from parley.client.service import ConversationService

__all__ = ["ConversationService", "HttpConversationService"]
