"""Unit tests for FilledEntityMap and entity references."""

import pytest

from parley.errors import EntityValueError
from parley.memory.models import (
    EntityDefinition,
    FilledEntity,
    FilledEntityMap,
    MemoryValue,
    NegativeEntity,
    PositiveEntity,
    filled_entity_value_as_string,
    parse_entity_ref,
    prebuilt_display_text,
)


@pytest.fixture
def entity_map() -> FilledEntityMap:
    return FilledEntityMap()


class TestRemember:
    """Tests for bucket and scalar remember semantics."""

    def test_bucket_dedups_exact_text(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("color", "e-color", "red", is_bucket=True)
        entity_map.remember("color", "e-color", "red", is_bucket=True)

        assert entity_map.value_as_list("color") == ["red"]

    def test_bucket_appends_distinct(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("color", "e-color", "red", is_bucket=True)
        entity_map.remember("color", "e-color", "blue", is_bucket=True)

        assert entity_map.value_as_list("color") == ["red", "blue"]

    def test_bucket_dedup_is_case_sensitive(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("color", "e-color", "red", is_bucket=True)
        entity_map.remember("color", "e-color", "Red", is_bucket=True)

        assert entity_map.value_as_list("color") == ["red", "Red"]

    def test_scalar_overwrites(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("name", "e-name", "Alice")
        entity_map.remember("name", "e-name", "Bob")

        assert entity_map.value_as_list("name") == ["Bob"]

    def test_remember_many_dedups_within_call(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("color", "e-color", ["red", "blue", "red"], is_bucket=True)

        assert entity_map.value_as_list("color") == ["red", "blue"]

    def test_remember_many_scalar_keeps_last(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("name", "e-name", ["Alice", "Bob"])

        assert entity_map.value_as_list("name") == ["Bob"]

    def test_prebuilt_display_text_from_resolution(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember(
            "number", "e-number", "twelve", builtin_type="builtin.number", resolution={"value": "12"}
        )

        value = entity_map.value_as_prebuilt("number")[0]
        assert value.user_text == "twelve"
        assert value.display_text == "12"
        assert entity_map.value_as_string("number") == "12"


class TestForget:
    """Tests for forget semantics."""

    def test_bucket_forget_case_insensitive(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("color", "e-color", ["red", "blue"], is_bucket=True)
        entity_map.forget("color", "RED", is_bucket=True)

        assert entity_map.value_as_list("color") == ["blue"]

    def test_bucket_forget_last_value_removes_key(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("color", "e-color", "red", is_bucket=True)
        entity_map.forget("color", "red", is_bucket=True)

        assert "color" not in entity_map

    def test_bucket_forget_without_value_removes_key(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("color", "e-color", ["red", "blue"], is_bucket=True)
        entity_map.forget("color", None, is_bucket=True)

        assert "color" not in entity_map

    def test_bucket_forget_unknown_value_keeps_values(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("color", "e-color", "red", is_bucket=True)
        entity_map.forget("color", "green", is_bucket=True)

        assert entity_map.value_as_list("color") == ["red"]

    def test_scalar_forget_ignores_value(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("name", "e-name", "Alice")
        entity_map.forget("name", "someone else")

        assert "name" not in entity_map

    def test_forget_unset_is_noop(self, entity_map: FilledEntityMap) -> None:
        entity_map.forget("name")
        assert len(entity_map) == 0


class TestProjections:
    """Tests for typed value projections."""

    def test_unset_projections_are_empty(self, entity_map: FilledEntityMap) -> None:
        assert entity_map.value_as_string("x") is None
        assert entity_map.value_as_list("x") == []
        assert entity_map.value_as_prebuilt("x") == []
        assert entity_map.value_as_number("x") is None
        assert entity_map.value_as_boolean("x") is None
        assert entity_map.value_as_object("x") is None

    def test_string_joins_values(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("color", "e-color", ["red", "blue", "green"], is_bucket=True)
        assert entity_map.value_as_string("color") == "red, blue and green"

    def test_number(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("age", "e-age", "42")
        assert entity_map.value_as_number("age") == 42.0

    def test_number_rejects_text(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("age", "e-age", "forty")
        with pytest.raises(EntityValueError):
            entity_map.value_as_number("age")

    def test_number_rejects_multi_value(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("age", "e-age", ["1", "2"], is_bucket=True)
        with pytest.raises(EntityValueError):
            entity_map.value_as_number("age")

    def test_boolean(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("ok", "e-ok", "True")
        assert entity_map.value_as_boolean("ok") is True

    def test_boolean_rejects_text(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("ok", "e-ok", "maybe")
        with pytest.raises(EntityValueError):
            entity_map.value_as_boolean("ok")

    def test_object(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("order", "e-order", '{"size": "large"}')
        assert entity_map.value_as_object("order") == {"size": "large"}

    def test_object_rejects_invalid_json(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("order", "e-order", "{not json")
        with pytest.raises(EntityValueError):
            entity_map.value_as_object("order")

    def test_dump(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("name", "e-name", "Alice")
        dump = entity_map.dump()

        assert len(dump) == 1
        assert dump[0].entity_name == "name"
        assert dump[0].entity_values[0].user_text == "Alice"


class TestSubstitution:
    """Tests for $entity substitution."""

    def test_substitute_entities(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("name", "e-name", "Alice")
        assert entity_map.substitute_entities("Hi $name, $unknown") == "Hi Alice, $unknown"

    def test_optional_section_kept_when_set(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("name", "e-name", "Alice")
        assert entity_map.substitute("Hello [$name] there") == "Hello Alice there"

    def test_optional_section_dropped_when_unset(self, entity_map: FilledEntityMap) -> None:
        assert entity_map.substitute("Hello [dear $name] there") == "Hello there"

    def test_bucket_rendered_as_list(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("color", "e-color", ["red", "blue"], is_bucket=True)
        assert entity_map.substitute("You like $color.") == "You like red and blue."


class TestSerialization:
    """Tests for map serialization."""

    def test_roundtrip(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember_many("color", "e-color", ["red", "blue"], is_bucket=True)
        restored = FilledEntityMap.deserialize(entity_map.serialize())

        assert restored.value_as_list("color") == ["red", "blue"]

    def test_deserialize_garbage_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            FilledEntityMap.deserialize("not json")

    def test_copy_is_deep(self, entity_map: FilledEntityMap) -> None:
        entity_map.remember("color", "e-color", "red", is_bucket=True)
        copied = entity_map.copy()
        copied.remember("color", "e-color", "blue", is_bucket=True)

        assert entity_map.value_as_list("color") == ["red"]

    def test_from_filled_entities_drops_unknown_ids(self) -> None:
        definitions = [EntityDefinition(entity_id="e-name", entity_name="name")]
        filled = [
            FilledEntity(entity_id="e-name", values=[MemoryValue(user_text="Alice")]),
            FilledEntity(entity_id="e-gone", values=[MemoryValue(user_text="x")]),
        ]

        result = FilledEntityMap.from_filled_entities(filled, definitions)
        assert result.entity_names() == ["name"]


class TestEntityRef:
    """Tests for the negation naming convention."""

    def test_negative_prefix(self) -> None:
        ref = parse_entity_ref("~color")
        assert ref == NegativeEntity("color")
        assert ref.name == "~color"

    def test_plain_name(self) -> None:
        assert parse_entity_ref("color") == PositiveEntity("color")

    def test_bare_prefix_is_positive(self) -> None:
        assert parse_entity_ref("~") == PositiveEntity("~")


class TestHelpers:
    def test_value_as_string_forms(self) -> None:
        def filled(*texts: str) -> FilledEntity:
            return FilledEntity(entity_id="e", values=[MemoryValue(user_text=t) for t in texts])

        assert filled_entity_value_as_string(filled()) == ""
        assert filled_entity_value_as_string(filled("a")) == "a"
        assert filled_entity_value_as_string(filled("a", "b")) == "a and b"

    def test_prebuilt_display_text(self) -> None:
        assert prebuilt_display_text(None, {"value": "1"}, "one") is None
        assert prebuilt_display_text("builtin.number", None, "one") == "one"
        assert (
            prebuilt_display_text("builtin.datetime", {"values": [{"value": "2020-01-01"}]}, "today")
            == "2020-01-01"
        )
