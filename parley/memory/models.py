"""Entity memory models.

A FilledEntityMap maps entity name to FilledEntity. Bucket entities hold
any number of distinct values; scalar entities hold one value or none.
"""

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from parley.errors import EntityValueError

NEGATIVE_PREFIX = "~"

ENTITY_TOKEN = re.compile(r"\$([\w\-~]+)")
OPTIONAL_SECTION = re.compile(r"\[([^\[\]]*)\]")
DOUBLE_SPACE = re.compile(r" {2,}")

MULTI_VALUE_NUMBER = "Entity is multi-value. Use a list projection for numbers"
MULTI_VALUE_BOOLEAN = "Entity is multi-value. Use a list projection for booleans"
NOT_A_NUMBER = "Memory Value is not a number"
NOT_A_BOOLEAN = "Memory Value is not a boolean"
NOT_AN_OBJECT = "Memory Value is not a JSON document"


class EntityType(str, Enum):
    """Where an entity's values come from."""

    LOCAL = "local"  # Set only by bot code
    EXTRACTED = "extracted"  # Predicted by the extraction service
    PREBUILT = "prebuilt"  # Resolved by a builtin recognizer


class EntityDefinition(BaseModel):
    """An entity slot defined by the active model."""

    entity_id: str
    entity_name: str
    entity_type: EntityType = Field(default=EntityType.EXTRACTED)
    is_bucket: bool = Field(default=False, description="Holds multiple distinct values")
    positive_id: str | None = Field(
        default=None, description="Set on negative entities: the entity they retract"
    )
    negative_id: str | None = Field(
        default=None, description="Set on positive entities with a negative counterpart"
    )

    @property
    def is_negative(self) -> bool:
        return self.positive_id is not None


class MemoryValue(BaseModel):
    """One remembered value of an entity."""

    user_text: str
    display_text: str | None = None
    builtin_type: str | None = None
    resolution: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        return self.display_text or self.user_text


class FilledEntity(BaseModel):
    """An entity together with its currently remembered values."""

    entity_id: str
    entity_name: str | None = None
    values: list[MemoryValue] = Field(default_factory=list)


class Memory(BaseModel):
    """Snapshot line of entity memory, used for display."""

    entity_name: str
    entity_values: list[MemoryValue]


@dataclass(frozen=True)
class PositiveEntity:
    """A plain entity name."""

    name: str


@dataclass(frozen=True)
class NegativeEntity:
    """An entity that retracts values of its positive counterpart."""

    positive_name: str

    @property
    def name(self) -> str:
        return f"{NEGATIVE_PREFIX}{self.positive_name}"


EntityRef = PositiveEntity | NegativeEntity


def parse_entity_ref(name: str) -> EntityRef:
    """Resolve the negation naming convention into a tagged reference."""
    if name.startswith(NEGATIVE_PREFIX) and len(name) > len(NEGATIVE_PREFIX):
        return NegativeEntity(name[len(NEGATIVE_PREFIX):])
    return PositiveEntity(name)


def prebuilt_display_text(
    builtin_type: str | None, resolution: dict[str, Any] | None, entity_text: str
) -> str | None:
    """Human-friendly text for a prebuilt entity's resolution."""
    if not builtin_type:
        return None
    if not resolution:
        return entity_text
    values = resolution.get("values")
    if isinstance(values, list) and values and isinstance(values[0], dict):
        first = values[0]
        if "value" in first:
            return str(first["value"])
    if "value" in resolution:
        return str(resolution["value"])
    return entity_text


def filled_entity_value_as_string(filled_entity: FilledEntity) -> str:
    """Render values as "a", "a and b" or "a, b and c"."""
    values = [v.text for v in filled_entity.values]
    if len(values) <= 1:
        return "".join(values)
    return ", ".join(values[:-1]) + " and " + values[-1]


_MAP_ADAPTER = TypeAdapter(dict[str, FilledEntity])


class FilledEntityMap:
    """Mapping of entity name to FilledEntity with typed projections."""

    def __init__(self, entities: dict[str, FilledEntity] | None = None) -> None:
        self.map: dict[str, FilledEntity] = entities or {}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> str:
        return _MAP_ADAPTER.dump_json(self.map).decode()

    @classmethod
    def deserialize(cls, text: str) -> "FilledEntityMap":
        """Parse a serialized map.

        Raises:
            ValueError: If text isn't a valid serialized map
        """
        try:
            return cls(_MAP_ADAPTER.validate_json(text))
        except ValidationError as e:
            raise ValueError(str(e)) from e

    @classmethod
    def from_filled_entities(
        cls,
        filled_entities: Iterable[FilledEntity],
        definitions: Iterable[EntityDefinition],
    ) -> "FilledEntityMap":
        """Key filled entities by name, dropping ids the model doesn't define."""
        names = {d.entity_id: d.entity_name for d in definitions}
        result = cls()
        for filled in filled_entities:
            name = names.get(filled.entity_id)
            if name:
                result.map[name] = filled.model_copy(update={"entity_name": name}, deep=True)
        return result

    def copy(self) -> "FilledEntityMap":
        return FilledEntityMap({k: v.model_copy(deep=True) for k, v in self.map.items()})

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def remember(
        self,
        entity_name: str,
        entity_id: str,
        entity_value: str,
        is_bucket: bool = False,
        builtin_type: str | None = None,
        resolution: dict[str, Any] | None = None,
    ) -> None:
        """Remember one value: append to a bucket unless present, else replace."""
        filled = self.map.get(entity_name)
        if filled is None:
            filled = FilledEntity(entity_id=entity_id, entity_name=entity_name)
            self.map[entity_name] = filled

        value = MemoryValue(
            user_text=entity_value,
            display_text=prebuilt_display_text(builtin_type, resolution, entity_value),
            builtin_type=builtin_type,
            resolution=resolution,
        )

        if is_bucket:
            if not any(v.user_text == entity_value for v in filled.values):
                filled.values.append(value)
        else:
            filled.values = [value]

    def remember_many(
        self,
        entity_name: str,
        entity_id: str,
        entity_values: Iterable[str],
        is_bucket: bool = False,
        builtin_type: str | None = None,
        resolution: dict[str, Any] | None = None,
    ) -> None:
        for entity_value in entity_values:
            self.remember(
                entity_name, entity_id, entity_value, is_bucket, builtin_type, resolution
            )

    def forget(
        self, entity_name: str, entity_value: str | None = None, is_bucket: bool = False
    ) -> None:
        """Forget a bucket value (case-insensitive) or the whole entity."""
        filled = self.map.get(entity_name)
        if filled is None:
            return

        if not is_bucket or not entity_value:
            del self.map[entity_name]
            return

        lowered = entity_value.lower()
        for index, memory_value in enumerate(filled.values):
            if memory_value.user_text.lower() == lowered:
                del filled.values[index]
                break
        if not filled.values:
            del self.map[entity_name]

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def entity_names(self) -> list[str]:
        return list(self.map)

    def filled_entities(self) -> list[FilledEntity]:
        return list(self.map.values())

    def dump(self) -> list[Memory]:
        return [
            Memory(entity_name=name, entity_values=list(filled.values))
            for name, filled in self.map.items()
        ]

    def value_as_string(self, entity_name: str) -> str | None:
        filled = self.map.get(entity_name)
        if filled is None:
            return None
        return filled_entity_value_as_string(filled)

    def value_as_list(self, entity_name: str) -> list[str]:
        filled = self.map.get(entity_name)
        if filled is None:
            return []
        return [v.user_text for v in filled.values]

    def value_as_prebuilt(self, entity_name: str) -> list[MemoryValue]:
        filled = self.map.get(entity_name)
        if filled is None:
            return []
        return list(filled.values)

    def _single_text(self, entity_name: str, multi_value_message: str) -> str | None:
        filled = self.map.get(entity_name)
        if filled is None or not filled.values:
            return None
        if len(filled.values) > 1:
            raise EntityValueError(multi_value_message)
        return filled.values[0].user_text

    def value_as_number(self, entity_name: str) -> float | None:
        text = self._single_text(entity_name, MULTI_VALUE_NUMBER)
        if text is None:
            return None
        try:
            return float(text)
        except ValueError as e:
            raise EntityValueError(f"{NOT_A_NUMBER}: {text}") from e

    def value_as_boolean(self, entity_name: str) -> bool | None:
        text = self._single_text(entity_name, MULTI_VALUE_BOOLEAN)
        if text is None:
            return None
        lowered = text.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise EntityValueError(f"{NOT_A_BOOLEAN}: {text}")

    def value_as_object(self, entity_name: str) -> Any:
        filled = self.map.get(entity_name)
        if filled is None or not filled.values:
            return None
        try:
            return json.loads(filled.values[0].user_text)
        except json.JSONDecodeError as e:
            raise EntityValueError(NOT_AN_OBJECT) from e

    # ------------------------------------------------------------------
    # Text substitution
    # ------------------------------------------------------------------

    def substitute_entities(self, text: str) -> str:
        """Replace $name tokens for remembered entities; leave others intact."""

        def _replace(match: re.Match[str]) -> str:
            value = self.value_as_string(match.group(1))
            return value if value is not None else match.group(0)

        return ENTITY_TOKEN.sub(_replace, text)

    def substitute(self, text: str) -> str:
        """Substitute entities, dropping [optional] sections with unset entities."""

        def _section(match: re.Match[str]) -> str:
            inner = match.group(1)
            names = ENTITY_TOKEN.findall(inner)
            if all(name in self.map for name in names):
                return inner
            return ""

        text = OPTIONAL_SECTION.sub(_section, text)
        return DOUBLE_SPACE.sub(" ", self.substitute_entities(text)).strip()

    def __contains__(self, entity_name: object) -> bool:
        return entity_name in self.map

    def __len__(self) -> int:
        return len(self.map)
