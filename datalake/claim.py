"""Model claims: requests for storage on which a model's data should live."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from .model import _format_time, _parse_time
from .storage import StorageKind

_U8_MAX = 255

_E = TypeVar("_E", bound=Enum)


def _expect_map(value: Any, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise ValueError(f"expected a mapping for {what}, got {type(value).__name__}")
    return value


def _parse_enum(cls: type[_E], value: Any, what: str) -> _E:
    if isinstance(value, cls):
        return value
    try:
        return cls(value)
    except ValueError:
        raise ValueError(f"unknown {what} {value!r}") from None


def _optional_str(value: Any, what: str) -> str | None:
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{what} must be a string, got {value!r}")
    return value


def _optional_resources(value: Any) -> dict[str, Any] | None:
    if value is None:
        return None
    return copy.deepcopy(dict(_expect_map(value, "resources")))


def _list_of(value: Any, what: str) -> list:
    if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        raise ValueError(f"{what} must be a list, got {value!r}")
    return list(value)


class AffinityExpressionSource(Enum):
    PROMETHEUS = "Prometheus"

    def __str__(self) -> str:
        return self.value


class BindingPolicy(Enum):
    BALANCED = "Balanced"
    LOWEST_COPY = "LowestCopy"
    LOWEST_LATENCY = "LowestLatency"

    def __str__(self) -> str:
        return self.value


class DeletionPolicy(Enum):
    DELETE = "Delete"
    RETAIN = "Retain"

    def __str__(self) -> str:
        return self.value


class ClaimState(Enum):
    PENDING = "Pending"
    READY = "Ready"
    REPLACING = "Replacing"
    DELETING = "Deleting"

    def __str__(self) -> str:
        return self.value


@dataclass
class AffinityExpression:
    """A query whose result decides how well a storage matches."""

    query: str
    source: AffinityExpressionSource = AffinityExpressionSource.PROMETHEUS

    def __post_init__(self) -> None:
        if not isinstance(self.query, str):
            raise ValueError(f"query must be a string, got {self.query!r}")
        self.source = _parse_enum(AffinityExpressionSource, self.source, "expression source")

    def to_dict(self) -> dict[str, Any]:
        return {"query": self.query, "source": self.source.value}

    @classmethod
    def from_dict(cls, data: Mapping) -> AffinityExpression:
        data = _expect_map(data, "affinity expression")
        if "query" not in data:
            raise ValueError("missing field 'query'")
        return cls(
            query=data["query"],
            source=data.get("source", AffinityExpressionSource.PROMETHEUS.value),
        )


@dataclass
class AffinityPreference:
    """A set of expressions that must all match."""

    match_expressions: list[AffinityExpression] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.match_expressions = _list_of(self.match_expressions, "matchExpressions")
        if not all(isinstance(e, AffinityExpression) for e in self.match_expressions):
            raise ValueError("matchExpressions must be AffinityExpression values")

    def to_dict(self) -> dict[str, Any]:
        return {"matchExpressions": [e.to_dict() for e in self.match_expressions]}

    @classmethod
    def from_dict(cls, data: Mapping) -> AffinityPreference:
        data = _expect_map(data, "affinity preference")
        raw = _list_of(data.get("matchExpressions", []), "matchExpressions")
        return cls([AffinityExpression.from_dict(item) for item in raw])


@dataclass
class PreferredAffinity:
    """A weighted preference; the weight fits in an unsigned byte."""

    weight: int
    base: AffinityPreference = field(default_factory=AffinityPreference)

    def __post_init__(self) -> None:
        weight = self.weight
        if isinstance(weight, bool) or not isinstance(weight, int) or not 0 <= weight <= _U8_MAX:
            raise ValueError(f"weight must be an unsigned 8-bit integer, got {weight!r}")
        if not isinstance(self.base, AffinityPreference):
            raise ValueError("base must be an AffinityPreference")

    def to_dict(self) -> dict[str, Any]:
        return {**self.base.to_dict(), "weight": self.weight}

    @classmethod
    def from_dict(cls, data: Mapping) -> PreferredAffinity:
        data = _expect_map(data, "preferred affinity")
        if "weight" not in data:
            raise ValueError("missing field 'weight'")
        return cls(weight=data["weight"], base=AffinityPreference.from_dict(data))


@dataclass
class AffinityRequirements:
    """Preferred and required affinities of a claim."""

    preferred: list[PreferredAffinity] = field(default_factory=list)
    required: list[AffinityPreference] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.preferred = _list_of(self.preferred, "preferred")
        self.required = _list_of(self.required, "required")
        if not all(isinstance(p, PreferredAffinity) for p in self.preferred):
            raise ValueError("preferred must be PreferredAffinity values")
        if not all(isinstance(r, AffinityPreference) for r in self.required):
            raise ValueError("required must be AffinityPreference values")

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferred": [p.to_dict() for p in self.preferred],
            "required": [r.to_dict() for r in self.required],
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> AffinityRequirements:
        data = _expect_map(data, "affinity requirements")
        preferred = _list_of(data.get("preferred", []), "preferred")
        required = _list_of(data.get("required", []), "required")
        return cls(
            preferred=[PreferredAffinity.from_dict(item) for item in preferred],
            required=[AffinityPreference.from_dict(item) for item in required],
        )


@dataclass
class ClaimAffinity:
    """Affinities used when placing a claim and when replacing its storage."""

    placement_affinity: AffinityRequirements = field(default_factory=AffinityRequirements)
    replacement_affinity: AffinityRequirements = field(default_factory=AffinityRequirements)

    def __post_init__(self) -> None:
        for name in ("placement_affinity", "replacement_affinity"):
            if not isinstance(getattr(self, name), AffinityRequirements):
                raise ValueError(f"{name} must be AffinityRequirements")

    def to_dict(self) -> dict[str, Any]:
        return {
            "placementAffinity": self.placement_affinity.to_dict(),
            "replacementAffinity": self.replacement_affinity.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ClaimAffinity:
        data = _expect_map(data, "claim affinity")

        def requirements(key: str) -> AffinityRequirements:
            if key in data:
                return AffinityRequirements.from_dict(data[key])
            return AffinityRequirements()

        return cls(
            placement_affinity=requirements("placementAffinity"),
            replacement_affinity=requirements("replacementAffinity"),
        )


@dataclass
class ModelClaimSpec:
    """A request for a storage to hold a model."""

    affinity: ClaimAffinity = field(default_factory=ClaimAffinity)
    allow_replacement: bool = True
    binding_policy: BindingPolicy = BindingPolicy.LOWEST_COPY
    deletion_policy: DeletionPolicy = DeletionPolicy.RETAIN
    resources: dict[str, Any] | None = None
    storage: StorageKind | None = None
    storage_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.affinity, ClaimAffinity):
            raise ValueError("affinity must be a ClaimAffinity")
        if not isinstance(self.allow_replacement, bool):
            raise ValueError(
                f"allowReplacement must be a boolean, got {self.allow_replacement!r}"
            )
        self.binding_policy = _parse_enum(BindingPolicy, self.binding_policy, "binding policy")
        self.deletion_policy = _parse_enum(
            DeletionPolicy, self.deletion_policy, "deletion policy"
        )
        self.resources = _optional_resources(self.resources)
        if self.storage is not None:
            self.storage = _parse_enum(StorageKind, self.storage, "storage kind")
        _optional_str(self.storage_name, "storageName")

    def to_dict(self) -> dict[str, Any]:
        return {
            "affinity": self.affinity.to_dict(),
            "allowReplacement": self.allow_replacement,
            "bindingPolicy": self.binding_policy.value,
            "deletionPolicy": self.deletion_policy.value,
            "resources": copy.deepcopy(self.resources),
            "storage": None if self.storage is None else self.storage.value,
            "storageName": self.storage_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelClaimSpec:
        data = _expect_map(data, "model claim spec")
        affinity = data.get("affinity")
        return cls(
            affinity=ClaimAffinity() if affinity is None else ClaimAffinity.from_dict(affinity),
            allow_replacement=data.get("allowReplacement", True),
            binding_policy=data.get("bindingPolicy", BindingPolicy.LOWEST_COPY.value),
            deletion_policy=data.get("deletionPolicy", DeletionPolicy.RETAIN.value),
            resources=data.get("resources"),
            storage=data.get("storage"),
            storage_name=data.get("storageName"),
        )


@dataclass
class ModelClaimStatus:
    """Observed state of a model claim."""

    last_updated: datetime
    state: ClaimState = ClaimState.PENDING
    resources: dict[str, Any] | None = None
    storage: StorageKind | None = None
    storage_name: str | None = None

    def __post_init__(self) -> None:
        self.last_updated = _parse_time(self.last_updated)
        self.state = _parse_enum(ClaimState, self.state, "claim state")
        self.resources = _optional_resources(self.resources)
        if self.storage is not None:
            self.storage = _parse_enum(StorageKind, self.storage, "storage kind")
        _optional_str(self.storage_name, "storageName")

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "resources": copy.deepcopy(self.resources),
            "storage": None if self.storage is None else self.storage.value,
            "storageName": self.storage_name,
            "lastUpdated": _format_time(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelClaimStatus:
        data = _expect_map(data, "model claim status")
        if "lastUpdated" not in data:
            raise ValueError("missing field 'lastUpdated'")
        return cls(
            last_updated=data["lastUpdated"],
            state=data.get("state", ClaimState.PENDING.value),
            resources=data.get("resources"),
            storage=data.get("storage"),
            storage_name=data.get("storageName"),
        )