"""Bindings of a model to the storage that holds its data."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from .model import ModelSpec, _format_time, _parse_time
from .storage import ModelStorageSpec

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


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{what} must be a string, got {value!r}")
    return value


class SyncPull(Enum):
    ALWAYS = "Always"
    ON_CREATE = "OnCreate"
    NEVER = "Never"

    def __str__(self) -> str:
        return self.value


class SyncPush(Enum):
    ALWAYS = "Always"
    ON_DELETE = "OnDelete"
    NEVER = "Never"

    def __str__(self) -> str:
        return self.value


class BindingDeletionPolicy(Enum):
    DELETE = "Delete"
    RETAIN = "Retain"

    def __str__(self) -> str:
        return self.value


class BindingState(Enum):
    PENDING = "Pending"
    READY = "Ready"
    DELETING = "Deleting"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SyncPolicy:
    """When data is pulled from the source and pushed back to it."""

    pull: SyncPull = SyncPull.ALWAYS
    push: SyncPush = SyncPush.ALWAYS

    def __post_init__(self) -> None:
        object.__setattr__(self, "pull", _parse_enum(SyncPull, self.pull, "pull policy"))
        object.__setattr__(self, "push", _parse_enum(SyncPush, self.push, "push policy"))

    def is_none(self) -> bool:
        """True when data is never synchronised in either direction."""
        return self.pull is SyncPull.NEVER and self.push is SyncPush.NEVER

    def to_dict(self) -> dict[str, Any]:
        return {"pull": self.pull.value, "push": self.push.value}

    @classmethod
    def from_dict(cls, data: Mapping) -> SyncPolicy:
        data = _expect_map(data, "sync policy")
        return cls(
            pull=data.get("pull", SyncPull.ALWAYS.value),
            push=data.get("push", SyncPush.ALWAYS.value),
        )


@dataclass
class BindingStorage:
    """The target storage of a binding, optionally cloned from a source storage."""

    target: str
    source: str | None = None
    source_binding_name: str | None = None
    sync_policy: SyncPolicy | None = None

    def __post_init__(self) -> None:
        _require_str(self.target, "target")
        _optional_str(self.source, "source")
        _optional_str(self.source_binding_name, "sourceBindingName")
        if self.source is None:
            if self.source_binding_name is not None or self.sync_policy is not None:
                raise ValueError("an owned storage takes no source settings")
        elif self.sync_policy is None:
            self.sync_policy = SyncPolicy()
        elif not isinstance(self.sync_policy, SyncPolicy):
            raise ValueError(f"sync_policy must be a SyncPolicy, got {self.sync_policy!r}")

    def is_cloned(self) -> bool:
        return self.source is not None

    def source_with_policy(self) -> tuple[str, SyncPolicy] | None:
        """The source storage and its sync policy, or None for an owned storage."""
        if self.source is None:
            return None
        return self.source, self.sync_policy

    def to_dict(self) -> dict[str, Any]:
        if self.source is None:
            return {"owned": {"target": self.target}}
        return {
            "cloned": {
                "source": self.source,
                "sourceBindingName": self.source_binding_name,
                "target": self.target,
                "syncPolicy": self.sync_policy.to_dict(),
            }
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> BindingStorage:
        data = _expect_map(data, "binding storage")
        for key, body in data.items():
            if key not in ("cloned", "owned"):
                continue
            body = _expect_map(body, f"binding storage {key!r}")
            if "target" not in body:
                raise ValueError("missing field 'target'")
            if key == "owned":
                return cls(target=body["target"])
            if "source" not in body:
                raise ValueError("missing field 'source'")
            raw_policy = body.get("syncPolicy")
            return cls(
                target=body["target"],
                source=_require_str(body["source"], "source"),
                source_binding_name=body.get("sourceBindingName"),
                sync_policy=SyncPolicy() if raw_policy is None else SyncPolicy.from_dict(raw_policy),
            )
        raise ValueError("no variant of binding storage found")


@dataclass
class ModelStorageBindingSpec:
    """Binds a model to a storage, named by the storage's resource name."""

    model: str
    storage: BindingStorage
    deletion_policy: BindingDeletionPolicy = BindingDeletionPolicy.RETAIN
    resources: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        _require_str(self.model, "model")
        if not isinstance(self.storage, BindingStorage):
            raise ValueError("storage must be a BindingStorage")
        self.deletion_policy = _parse_enum(
            BindingDeletionPolicy, self.deletion_policy, "deletion policy"
        )
        if self.resources is not None:
            self.resources = copy.deepcopy(dict(_expect_map(self.resources, "resources")))

    def to_dict(self) -> dict[str, Any]:
        return {
            "deletionPolicy": self.deletion_policy.value,
            "model": self.model,
            "resources": copy.deepcopy(self.resources),
            "storage": self.storage.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelStorageBindingSpec:
        data = _expect_map(data, "model storage binding spec")
        for key in ("model", "storage"):
            if key not in data:
                raise ValueError(f"missing field {key!r}")
        return cls(
            model=data["model"],
            storage=BindingStorage.from_dict(data["storage"]),
            deletion_policy=data.get("deletionPolicy", BindingDeletionPolicy.RETAIN.value),
            resources=data.get("resources"),
        )


@dataclass
class ModelStorageBindingStatus:
    """Observed state of a binding, with the resolved model and storages."""

    last_updated: datetime
    state: BindingState = BindingState.PENDING
    deletion_policy: BindingDeletionPolicy = BindingDeletionPolicy.RETAIN
    model: ModelSpec | None = None
    model_name: str | None = None
    resources: dict[str, Any] | None = None
    storage_source: ModelStorageSpec | None = None
    storage_source_binding_name: str | None = None
    storage_source_name: str | None = None
    storage_source_uid: str | None = None
    storage_sync_policy: SyncPolicy | None = None
    storage_target: ModelStorageSpec | None = None
    storage_target_name: str | None = None
    storage_target_uid: str | None = None

    _NAMES = (
        ("model_name", "modelName"),
        ("storage_source_binding_name", "storageSourceBindingName"),
        ("storage_source_name", "storageSourceName"),
        ("storage_source_uid", "storageSourceUid"),
        ("storage_target_name", "storageTargetName"),
        ("storage_target_uid", "storageTargetUid"),
    )

    def __post_init__(self) -> None:
        self.last_updated = _parse_time(self.last_updated)
        self.state = _parse_enum(BindingState, self.state, "binding state")
        self.deletion_policy = _parse_enum(
            BindingDeletionPolicy, self.deletion_policy, "deletion policy"
        )
        if self.model is not None and not isinstance(self.model, ModelSpec):
            raise ValueError("model must be a ModelSpec")
        for attr, key in self._NAMES:
            _optional_str(getattr(self, attr), key)
        if self.resources is not None:
            self.resources = copy.deepcopy(dict(_expect_map(self.resources, "resources")))
        for attr in ("storage_source", "storage_target"):
            value = getattr(self, attr)
            if value is not None and not isinstance(value, ModelStorageSpec):
                raise ValueError(f"{attr} must be a ModelStorageSpec")
        if self.storage_sync_policy is not None and not isinstance(
            self.storage_sync_policy, SyncPolicy
        ):
            raise ValueError("storage_sync_policy must be a SyncPolicy")

    def to_dict(self) -> dict[str, Any]:
        def dump(value: Any) -> Any:
            return None if value is None else value.to_dict()

        return {
            "state": self.state.value,
            "deletionPolicy": self.deletion_policy.value,
            "model": dump(self.model),
            "modelName": self.model_name,
            "resources": copy.deepcopy(self.resources),
            "storageSource": dump(self.storage_source),
            "storageSourceBindingName": self.storage_source_binding_name,
            "storageSourceName": self.storage_source_name,
            "storageSourceUid": self.storage_source_uid,
            "storageSyncPolicy": dump(self.storage_sync_policy),
            "storageTarget": dump(self.storage_target),
            "storageTargetName": self.storage_target_name,
            "storageTargetUid": self.storage_target_uid,
            "lastUpdated": _format_time(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelStorageBindingStatus:
        data = _expect_map(data, "model storage binding status")
        if "lastUpdated" not in data:
            raise ValueError("missing field 'lastUpdated'")

        def load(key: str, parser: Any) -> Any:
            raw = data.get(key)
            return None if raw is None else parser(raw)

        return cls(
            last_updated=data["lastUpdated"],
            state=data.get("state", BindingState.PENDING.value),
            deletion_policy=data.get("deletionPolicy", BindingDeletionPolicy.RETAIN.value),
            model=load("model", ModelSpec.from_dict),
            resources=data.get("resources"),
            storage_source=load("storageSource", ModelStorageSpec.from_dict),
            storage_sync_policy=load("storageSyncPolicy", SyncPolicy.from_dict),
            storage_target=load("storageTarget", ModelStorageSpec.from_dict),
            **{attr: data.get(key) for attr, key in cls._NAMES},
        )