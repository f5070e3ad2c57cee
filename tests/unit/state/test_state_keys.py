"""Unit tests for persisted state key layout."""

import hashlib

from parley.state.keys import Namespace, build_key, scope_key


class TestScopeKey:
    def test_is_sha256_of_model_and_identity(self) -> None:
        expected = hashlib.sha256(b"model-1conv-1").hexdigest()
        assert scope_key("conv-1", "model-1") == expected

    def test_models_get_distinct_scopes(self) -> None:
        assert scope_key("conv-1", "a") != scope_key("conv-1", "b")

    def test_stable(self) -> None:
        assert scope_key("conv-1") == scope_key("conv-1")


class TestBuildKey:
    def test_namespace_suffix(self) -> None:
        assert build_key("abc", Namespace.ENTITY_MEMORY) == "abc_ENTITYSTATE"
        assert build_key("abc", Namespace.BOT_STATE) == "abc_BOTSTATE"
        assert build_key("abc", Namespace.MESSAGE_PROCESSING) == "abc_MESSAGE_MUTEX"
        assert build_key("abc", Namespace.TRAIN_HISTORY) == "abc_TRAINHISTORY"
