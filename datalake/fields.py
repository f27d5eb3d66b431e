"""Field descriptions of a data model and their wire representation.

A field kind is stored on the wire as an externally tagged mapping whose
single key is the camel-cased kind name, e.g. ``{"integer": {"default": 1,
"minimum": null, "maximum": null}}``. A field spec flattens its kind into the
same mapping as its ``name`` and ``optional`` keys.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_U32_MAX = 2**32 - 1


class FieldKindError(ValueError):
    """Raised when a field description is malformed or of the wrong family."""


def _tag(name: str) -> str:
    return name[0].lower() + name[1:]


class NativeType(Enum):
    """Field types that map directly onto a storage type."""

    NONE = "None"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    NUMBER = "Number"
    STRING = "String"
    ONE_OF_STRINGS = "OneOfStrings"
    DATE_TIME = "DateTime"
    IP = "Ip"
    UUID = "Uuid"
    STRING_ARRAY = "StringArray"
    OBJECT = "Object"
    OBJECT_ARRAY = "ObjectArray"

    def is_array(self) -> bool:
        return self in (NativeType.STRING_ARRAY, NativeType.OBJECT_ARRAY)

    def to_natural(self) -> str:
        """Human-friendly type name."""
        return _NATURAL.get(self, self.value)

    def __str__(self) -> str:
        return self.value


_NATURAL = {
    NativeType.ONE_OF_STRINGS: "String",
    NativeType.STRING_ARRAY: "String[]",
    NativeType.OBJECT_ARRAY: "Object[]",
}


class ExtendedType(Enum):
    """Field types that refer to other models."""

    MODEL = "Model"

    def __str__(self) -> str:
        return self.value


class DateTimeDefault(Enum):
    NOW = "Now"

    def __str__(self) -> str:
        return self.value


class StringMode(Enum):
    DYNAMIC = "dynamic"
    STATIC = "static"
    RANGE = "range"


class ObjectMode(Enum):
    DYNAMIC = "dynamic"
    ENUMERATE = "enumerate"
    STATIC = "static"


def _expect_map(value: Any, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise FieldKindError(f"expected a mapping for {what}, got {type(value).__name__}")
    return value


def _check_u32(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise FieldKindError(f"{what} must be an unsigned 32-bit integer, got {value!r}")
    return value


def _check_i64(value: Any, what: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not _I64_MIN <= value <= _I64_MAX:
        raise FieldKindError(f"{what} must be a signed 64-bit integer, got {value!r}")
    return value


def _check_float(value: Any, what: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FieldKindError(f"{what} must be a number, got {value!r}")
    return float(value)


def _check_str(value: Any, what: str) -> str | None:
    if value is not None and not isinstance(value, str):
        raise FieldKindError(f"{what} must be a string, got {value!r}")
    return value


def _check_str_list(value: Any, what: str) -> tuple[str, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise FieldKindError(f"{what} must be a list of strings, got {value!r}")
    items = tuple(value)
    if not all(isinstance(item, str) for item in items):
        raise FieldKindError(f"{what} must be a list of strings, got {value!r}")
    return items


def _find_variant(data: Mapping, variants: Mapping[str, Any]) -> tuple[Any, Any] | None:
    for key, body in data.items():
        if key in variants:
            return variants[key], body
    return None


@dataclass(frozen=True)
class StringKind:
    """Length constraint of a string field."""

    mode: StringMode = StringMode.DYNAMIC
    length: int | None = None
    minimum: int | None = None
    maximum: int | None = None

    def __post_init__(self) -> None:
        mode = StringMode(self.mode)
        object.__setattr__(self, "mode", mode)
        if mode is StringMode.DYNAMIC:
            if (self.length, self.minimum, self.maximum) != (None, None, None):
                raise FieldKindError("a dynamic string takes no length constraints")
        elif mode is StringMode.STATIC:
            if self.minimum is not None or self.maximum is not None:
                raise FieldKindError("a static string takes only a length")
            _check_u32(self.length, "length")
        else:
            if self.length is not None:
                raise FieldKindError("a string range takes no fixed length")
            if self.minimum is not None:
                _check_u32(self.minimum, "minimum")
            _check_u32(self.maximum, "maximum")

    def to_dict(self) -> dict[str, Any]:
        if self.mode is StringMode.STATIC:
            body: dict[str, Any] = {"length": self.length}
        elif self.mode is StringMode.RANGE:
            body = {"minimum": self.minimum, "maximum": self.maximum}
        else:
            body = {}
        return {self.mode.value: body}

    @classmethod
    def from_dict(cls, data: Mapping) -> StringKind:
        data = _expect_map(data, "string kind")
        found = _find_variant(data, {mode.value: mode for mode in StringMode})
        if found is None:
            raise FieldKindError("no variant of string kind found")
        mode, body = found
        body = _expect_map(body, f"string kind {mode.value!r}")
        if mode is StringMode.STATIC:
            if "length" not in body:
                raise FieldKindError("missing field 'length'")
            return cls(mode, length=body["length"])
        if mode is StringMode.RANGE:
            if "maximum" not in body:
                raise FieldKindError("missing field 'maximum'")
            return cls(mode, minimum=body.get("minimum"), maximum=body["maximum"])
        return cls(mode)


@dataclass(frozen=True)
class ObjectKind:
    """Shape of an object field."""

    mode: ObjectMode = ObjectMode.STATIC
    choices: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        mode = ObjectMode(self.mode)
        object.__setattr__(self, "mode", mode)
        choices = _check_str_list(self.choices, "choices")
        if choices and mode is not ObjectMode.ENUMERATE:
            raise FieldKindError(f"an object of mode {mode.value!r} takes no choices")
        object.__setattr__(self, "choices", choices)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.mode is ObjectMode.ENUMERATE:
            body["choices"] = list(self.choices)
        return {self.mode.value: body}

    @classmethod
    def from_dict(cls, data: Mapping) -> ObjectKind:
        data = _expect_map(data, "object kind")
        found = _find_variant(data, {mode.value: mode for mode in ObjectMode})
        if found is None:
            raise FieldKindError("no variant of object kind found")
        mode, body = found
        body = _expect_map(body, f"object kind {mode.value!r}")
        if mode is ObjectMode.ENUMERATE:
            if "choices" not in body:
                raise FieldKindError("missing field 'choices'")
            return cls(mode, tuple(_check_str_list(body["choices"], "choices")))
        return cls(mode)


FieldType = Union[NativeType, ExtendedType]

_EMPTY: dict[str, Any] = {
    "default": None,
    "minimum": None,
    "maximum": None,
    "string": None,
    "choices": (),
    "children": (),
    "object": None,
    "model": None,
}

_ALLOWED: dict[FieldType, frozenset[str]] = {
    NativeType.NONE: frozenset(),
    NativeType.BOOLEAN: frozenset({"default"}),
    NativeType.INTEGER: frozenset({"default", "minimum", "maximum"}),
    NativeType.NUMBER: frozenset({"default", "minimum", "maximum"}),
    NativeType.STRING: frozenset({"default", "string"}),
    NativeType.ONE_OF_STRINGS: frozenset({"default", "choices"}),
    NativeType.DATE_TIME: frozenset({"default"}),
    NativeType.IP: frozenset(),
    NativeType.UUID: frozenset(),
    NativeType.STRING_ARRAY: frozenset(),
    NativeType.OBJECT: frozenset({"children", "object"}),
    NativeType.OBJECT_ARRAY: frozenset({"children"}),
    ExtendedType.MODEL: frozenset({"model"}),
}

_TAGS: dict[str, FieldType] = {_tag(t.value): t for t in _ALLOWED}


@dataclass(frozen=True)
class FieldKind:
    """The type of a field together with its type-specific settings."""

    type: FieldType = NativeType.NONE
    default: Any = None
    minimum: Any = None
    maximum: Any = None
    string: StringKind | None = None
    choices: tuple[str, ...] = ()
    children: tuple[str, ...] = ()
    object: ObjectKind | None = None
    model: str | None = None

    def __post_init__(self) -> None:
        kind = self.type
        if not isinstance(kind, (NativeType, ExtendedType)):
            raise FieldKindError(f"unknown field type {kind!r}")
        set_ = object.__setattr__
        set_(self, "choices", _check_str_list(self.choices, "choices"))
        set_(self, "children", _check_str_list(self.children, "children"))
        allowed = _ALLOWED[kind]
        for name, empty in _EMPTY.items():
            if name not in allowed and getattr(self, name) != empty:
                raise FieldKindError(f"field type {kind.value} takes no {name!r}")

        if kind is NativeType.BOOLEAN:
            if self.default is not None and not isinstance(self.default, bool):
                raise FieldKindError(f"default must be a boolean, got {self.default!r}")
        elif kind is NativeType.INTEGER:
            for name in ("default", "minimum", "maximum"):
                set_(self, name, _check_i64(getattr(self, name), name))
        elif kind is NativeType.NUMBER:
            for name in ("default", "minimum", "maximum"):
                set_(self, name, _check_float(getattr(self, name), name))
        elif kind is NativeType.STRING:
            _check_str(self.default, "default")
            if self.string is None:
                set_(self, "string", StringKind())
            elif not isinstance(self.string, StringKind):
                raise FieldKindError(f"string must be a StringKind, got {self.string!r}")
        elif kind is NativeType.ONE_OF_STRINGS:
            _check_str(self.default, "default")
        elif kind is NativeType.DATE_TIME:
            if self.default is not None:
                try:
                    set_(self, "default", DateTimeDefault(self.default))
                except ValueError:
                    raise FieldKindError(
                        f"unknown date-time default {self.default!r}"
                    ) from None
        elif kind is NativeType.OBJECT:
            if self.object is None:
                set_(self, "object", ObjectKind())
            elif not isinstance(self.object, ObjectKind):
                raise FieldKindError(f"object must be an ObjectKind, got {self.object!r}")
        elif kind is ExtendedType.MODEL:
            if not isinstance(self.model, str):
                raise FieldKindError("a model reference needs a model name")

    def is_native(self) -> bool:
        return isinstance(self.type, NativeType)

    def is_array(self) -> bool:
        return self.is_native() and self.type.is_array()

    def _type_repr(self) -> str:
        family = "Native" if self.is_native() else "Extended"
        return f"{family}({self.type.value})"

    def to_dict(self) -> dict[str, Any]:
        kind = self.type
        body: dict[str, Any]
        if kind in (NativeType.INTEGER, NativeType.NUMBER):
            body = {"default": self.default, "minimum": self.minimum, "maximum": self.maximum}
        elif kind is NativeType.BOOLEAN:
            body = {"default": self.default}
        elif kind is NativeType.STRING:
            body = {"default": self.default, **self.string.to_dict()}
        elif kind is NativeType.ONE_OF_STRINGS:
            body = {"default": self.default, "choices": list(self.choices)}
        elif kind is NativeType.DATE_TIME:
            body = {"default": None if self.default is None else self.default.value}
        elif kind is NativeType.OBJECT:
            body = {"children": list(self.children), "kind": self.object.to_dict()}
        elif kind is NativeType.OBJECT_ARRAY:
            body = {"children": list(self.children)}
        elif kind is ExtendedType.MODEL:
            body = {"name": self.model}
        else:
            body = {}
        return {_tag(kind.value): body}

    @classmethod
    def from_dict(cls, data: Mapping) -> FieldKind:
        data = _expect_map(data, "field kind")
        found = _find_variant(data, _TAGS)
        if found is None:
            raise FieldKindError("no variant of field kind found")
        kind, body = found
        body = _expect_map(body, f"field kind {_tag(kind.value)!r}")

        if kind in (NativeType.INTEGER, NativeType.NUMBER):
            return cls(
                kind,
                default=body.get("default"),
                minimum=body.get("minimum"),
                maximum=body.get("maximum"),
            )
        if kind in (NativeType.BOOLEAN, NativeType.DATE_TIME):
            return cls(kind, default=body.get("default"))
        if kind is NativeType.STRING:
            has_mode = any(mode.value in body for mode in StringMode)
            string = StringKind.from_dict(body) if has_mode else StringKind()
            return cls(kind, default=body.get("default"), string=string)
        if kind is NativeType.ONE_OF_STRINGS:
            if "choices" not in body:
                raise FieldKindError("missing field 'choices'")
            return cls(kind, default=body.get("default"), choices=body["choices"])
        if kind is NativeType.OBJECT:
            raw_kind = body.get("kind")
            object_kind = ObjectKind() if raw_kind is None else ObjectKind.from_dict(raw_kind)
            return cls(kind, children=body.get("children", ()), object=object_kind)
        if kind is NativeType.OBJECT_ARRAY:
            return cls(kind, children=body.get("children", ()))
        if kind is ExtendedType.MODEL:
            if "name" not in body:
                raise FieldKindError("missing field 'name'")
            return cls(kind, model=_check_str(body["name"], "name"))
        return cls(kind)


@dataclass(frozen=True)
class FieldSpec:
    """A named field of a model."""

    name: str
    kind: FieldKind = field(default_factory=FieldKind)
    optional: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise FieldKindError(f"field name must be a string, got {self.name!r}")
        if not isinstance(self.kind, FieldKind):
            raise FieldKindError(f"kind must be a FieldKind, got {self.kind!r}")
        if not isinstance(self.optional, bool):
            raise FieldKindError(f"optional must be a boolean, got {self.optional!r}")

    def into_native(self) -> FieldSpec:
        """Return this field if its kind is native, otherwise raise."""
        if not self.kind.is_native():
            raise FieldKindError(
                f"cannot infer field type {json.dumps(self.name)}: "
                f"expected Native types, but given {self.kind._type_repr()}"
            )
        return self

    def into_extended(self) -> FieldSpec:
        """Return this field if its kind is extended, otherwise raise."""
        if self.kind.is_native():
            raise FieldKindError(
                f"cannot infer field type {json.dumps(self.name)}: "
                f"expected Extended types, but given {self.kind._type_repr()}"
            )
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, **self.kind.to_dict(), "optional": self.optional}

    @classmethod
    def from_dict(cls, data: Mapping) -> FieldSpec:
        data = _expect_map(data, "field")
        if "name" not in data:
            raise FieldKindError("missing field 'name'")
        return cls(
            name=data["name"],
            kind=FieldKind.from_dict(data),
            optional=data.get("optional", False),
        )


def parse_fields(data: Iterable[Mapping]) -> list[FieldSpec]:
    """Read a list of field descriptions."""
    if isinstance(data, Mapping) or isinstance(data, (str, bytes)):
        raise FieldKindError("expected a list of fields")
    return [FieldSpec.from_dict(item) for item in data]


def dump_fields(fields: Iterable[FieldSpec]) -> list[dict[str, Any]]:
    """Write a list of fields in their wire form."""
    return [spec.to_dict() for spec in fields]