"""Turn admission, turn processing and training dialog replay.

Import components from their modules; ConversationRuntime lives in
parley.runtime.runtime.
"""
