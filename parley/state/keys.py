"""Key layout for persisted state.

One blob is stored per (scope key, namespace). The scope key is derived
from the conversation or user identity, optionally combined with a model
id so that several models can share one conversation.
"""

import hashlib
from enum import Enum


class Namespace(str, Enum):
    """Persisted state namespaces."""

    ENTITY_MEMORY = "ENTITYSTATE"
    BOT_STATE = "BOTSTATE"
    MESSAGE_PROCESSING = "MESSAGE_MUTEX"
    TRAIN_HISTORY = "TRAINHISTORY"


def scope_key(identity: str, model_id: str = "") -> str:
    """Hash an identity (and model id) into a storage scope key."""
    return hashlib.sha256(f"{model_id}{identity}".encode()).hexdigest()


def build_key(scope: str, namespace: Namespace) -> str:
    """Build the full key for a namespace within a scope."""
    return f"{scope}_{namespace.value}"
