"""Parley: conversational-agent runtime core.

Tracks per-conversation entity memory, serializes turn processing, and
replays recorded training dialogs to detect behavioral drift.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
