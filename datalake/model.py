"""Data models: how a model is described and what state it is in."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .fields import FieldSpec, dump_fields, parse_fields

NAMESPACE = "cdl"


def _format_time(value: datetime) -> str:
    text = value.astimezone(timezone.utc).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def _parse_time(value: Any) -> datetime:
    """Read an RFC 3339 timestamp (or an aware datetime) as a UTC datetime."""
    if isinstance(value, str):
        text = value.strip()
        if text[-1:] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"invalid timestamp {value!r}") from None
    if not isinstance(value, datetime):
        raise ValueError(f"expected a timestamp, got {value!r}")
    if value.tzinfo is None:
        raise ValueError(f"timestamp {value!r} has no time zone")
    return value.astimezone(timezone.utc)


def _expect_map(value: Any, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise ValueError(f"expected a mapping for {what}, got {type(value).__name__}")
    return value


class ModelState(Enum):
    PENDING = "Pending"
    READY = "Ready"
    DELETING = "Deleting"

    def __str__(self) -> str:
        return self.value


class ModelSpecKind(Enum):
    """How a model's fields are given; the value is the wire tag."""

    DYNAMIC = "dynamic"
    FIELDS = "fields"
    CUSTOM_RESOURCE_DEFINITION_REF = "customResourceDefinitionRef"


@dataclass(frozen=True)
class CustomResourceDefinitionRef:
    """Reference to a custom resource definition by its full name."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise ValueError(f"name must be a string, got {self.name!r}")

    def plural(self) -> str:
        """The plural resource name: the part of the name before the first dot."""
        return self.name.split(".", 1)[0]


@dataclass(frozen=True)
class ModelSpec:
    """What a model holds: dynamic data, a list of fields or a CRD's schema."""

    kind: ModelSpecKind = ModelSpecKind.DYNAMIC
    fields: tuple[FieldSpec, ...] = ()
    crd: CustomResourceDefinitionRef | None = None

    def __post_init__(self) -> None:
        kind = ModelSpecKind(self.kind)
        object.__setattr__(self, "kind", kind)
        specs = tuple(self.fields)
        if not all(isinstance(spec, FieldSpec) for spec in specs):
            raise ValueError("fields must be FieldSpec values")
        object.__setattr__(self, "fields", specs)
        if kind is not ModelSpecKind.FIELDS and specs:
            raise ValueError(f"a {kind.value!r} model takes no fields")
        if kind is ModelSpecKind.CUSTOM_RESOURCE_DEFINITION_REF:
            if not isinstance(self.crd, CustomResourceDefinitionRef):
                raise ValueError("a custom resource definition reference is required")
        elif self.crd is not None:
            raise ValueError(f"a {kind.value!r} model takes no definition reference")

    def to_dict(self) -> dict[str, Any]:
        if self.kind is ModelSpecKind.FIELDS:
            body: Any = dump_fields(self.fields)
        elif self.kind is ModelSpecKind.CUSTOM_RESOURCE_DEFINITION_REF:
            body = {"name": self.crd.name}
        else:
            body = {}
        return {self.kind.value: body}

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelSpec:
        data = _expect_map(data, "model spec")
        tags = {kind.value: kind for kind in ModelSpecKind}
        for key, body in data.items():
            kind = tags.get(key)
            if kind is None:
                continue
            if kind is ModelSpecKind.FIELDS:
                return cls(kind, fields=tuple(parse_fields(body)))
            body = _expect_map(body, f"model spec {key!r}")
            if kind is ModelSpecKind.CUSTOM_RESOURCE_DEFINITION_REF:
                if "name" not in body:
                    raise ValueError("missing field 'name'")
                return cls(kind, crd=CustomResourceDefinitionRef(body["name"]))
            return cls(kind)
        raise ValueError("no variant of model spec found")


@dataclass(frozen=True)
class ModelStatus:
    """Observed state of a model; its fields, once known, are all native."""

    last_updated: datetime
    state: ModelState = ModelState.PENDING
    fields: tuple[FieldSpec, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "last_updated", _parse_time(self.last_updated))
        object.__setattr__(self, "state", ModelState(self.state))
        if self.fields is not None:
            specs = tuple(self.fields)
            if not all(isinstance(spec, FieldSpec) for spec in specs):
                raise ValueError("fields must be FieldSpec values")
            object.__setattr__(self, "fields", tuple(spec.into_native() for spec in specs))

    def fields_unchecked(self) -> tuple[FieldSpec, ...]:
        """The model's fields; raises if they are not known yet."""
        if self.fields is None:
            raise ValueError("fields should not be empty")
        return self.fields

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "fields": None if self.fields is None else dump_fields(self.fields),
            "lastUpdated": _format_time(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelStatus:
        data = _expect_map(data, "model status")
        if "lastUpdated" not in data:
            raise ValueError("missing field 'lastUpdated'")
        raw_state = data.get("state", ModelState.PENDING.value)
        try:
            state = ModelState(raw_state)
        except ValueError:
            raise ValueError(f"unknown model state {raw_state!r}") from None
        raw_fields = data.get("fields")
        fields: Iterable[FieldSpec] | None = (
            None if raw_fields is None else tuple(parse_fields(raw_fields))
        )
        return cls(last_updated=data["lastUpdated"], state=state, fields=fields)