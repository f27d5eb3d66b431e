"""Model storages: where model data lives and how it is reached."""

from __future__ import annotations

import copy
import ipaddress
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_CEILING, Decimal, localcontext
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .model import _format_time, _parse_time

_U32_MAX = 2**32 - 1
_U128_MAX = 2**128 - 1

_BYTE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([A-Za-z]*)\s*$")
_PREFIXES = "kmgtpezy"


def _unit_multiplier(unit: str) -> int:
    unit = unit.lower()
    if unit in ("", "b"):
        return 1
    power = _PREFIXES.find(unit[0]) + 1
    if power == 0:
        raise ValueError(f"unknown byte unit {unit!r}")
    rest = unit[1:]
    if rest in ("", "b"):
        return 1000**power
    if rest in ("i", "ib"):
        return 1024**power
    raise ValueError(f"unknown byte unit {unit!r}")


def parse_byte_size(text: str) -> int:
    """Read a byte size such as ``"1TiB"``, ``"16Gi"`` or ``"500 MB"``."""
    if not isinstance(text, str):
        raise ValueError(f"expected a byte size string, got {text!r}")
    match = _BYTE_RE.match(text)
    if match is None:
        raise ValueError(f"invalid byte size {text!r}")
    multiplier = _unit_multiplier(match[2])
    with localcontext() as context:
        context.prec = 100
        value = Decimal(match[1]) * multiplier
        size = int(value.to_integral_value(rounding=ROUND_CEILING))
    if size > _U128_MAX:
        raise ValueError(f"byte size {text!r} is too large")
    return size


def storage_quota(resources: Mapping | None) -> int | None:
    """The requested ``storage`` of resource requirements, in bytes, if readable."""
    if not isinstance(resources, Mapping):
        return None
    requests = resources.get("requests")
    if not isinstance(requests, Mapping):
        return None
    try:
        return parse_byte_size(requests.get("storage"))
    except ValueError:
        return None


_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}
_FORBIDDEN_HOST = set(" \t\r\n#%/:<>?@[\\]^|")


def _parse_url(text: Any) -> str:
    """Validate and normalise an absolute URL."""
    if not isinstance(text, str):
        raise ValueError(f"expected a URL string, got {text!r}")
    parts = urlsplit(text.strip())
    scheme = parts.scheme.lower()
    if not scheme:
        raise ValueError(f"relative URL without a base: {text!r}")
    netloc, path = parts.netloc, parts.path
    if scheme in _DEFAULT_PORTS:
        host = parts.hostname
        if not host:
            raise ValueError(f"empty host in URL {text!r}")
        if ":" in host:
            ipaddress.IPv6Address(host)
            host = f"[{host}]"
        elif any(char in _FORBIDDEN_HOST for char in host):
            raise ValueError(f"invalid host in URL {text!r}")
        try:
            port = parts.port
        except ValueError:
            raise ValueError(f"invalid port in URL {text!r}") from None
        userinfo = netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{host}" if userinfo else host
        if port is not None and port != _DEFAULT_PORTS[scheme]:
            netloc += f":{port}"
        path = path or "/"
    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def _url_or_none(text: str) -> str | None:
    try:
        return _parse_url(text)
    except ValueError:
        return None


def get_object_storage_endpoint(namespace: str) -> str | None:
    """Endpoint of the object storage service in a namespace."""
    return _url_or_none(f"http://object-storage.{namespace}.svc")


def get_object_storage_owned_endpoint(namespace: str) -> str | None:
    """Endpoint of the owned MinIO service in a namespace."""
    return _url_or_none(f"http://minio.{namespace}.svc")


def _expect_map(value: Any, what: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise ValueError(f"expected a mapping for {what}, got {type(value).__name__}")
    return value


def _check_u32(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise ValueError(f"{what} must be an unsigned 32-bit integer, got {value!r}")
    return value


def _find_variant(data: Mapping, tags: Mapping[str, Any]) -> tuple[Any, Any] | None:
    for key, body in data.items():
        if key in tags:
            return tags[key], body
    return None


class StorageKind(Enum):
    OBJECT_STORAGE = "ObjectStorage"

    def __str__(self) -> str:
        return self.value


class StorageState(Enum):
    PENDING = "Pending"
    READY = "Ready"
    DELETING = "Deleting"

    def __str__(self) -> str:
        return self.value


@dataclass
class ExternalServiceSpec:
    """Optional external exposure of a service."""

    address_pool: str | None = None
    ip: ipaddress.IPv4Address | None = None

    def __post_init__(self) -> None:
        if self.address_pool is not None and not isinstance(self.address_pool, str):
            raise ValueError(f"addressPool must be a string, got {self.address_pool!r}")
        if self.ip is not None:
            try:
                self.ip = ipaddress.IPv4Address(self.ip)
            except ValueError:
                raise ValueError(f"invalid IPv4 address {self.ip!r}") from None

    def is_enabled(self) -> bool:
        return self.address_pool is not None or self.ip is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "addressPool": self.address_pool,
            "ip": None if self.ip is None else str(self.ip),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ExternalServiceSpec:
        data = _expect_map(data, "external service")
        return cls(address_pool=data.get("addressPool"), ip=data.get("ip"))


def _default_resources() -> dict[str, Any]:
    return {
        "limits": {
            "cpu": ReplicationSpec.DEFAULT_RESOURCES_CPU,
            "memory": ReplicationSpec.DEFAULT_RESOURCES_MEMORY,
        },
        "requests": {"storage": ReplicationSpec.DEFAULT_RESOURCES_STORAGE},
    }


@dataclass
class ReplicationSpec:
    """Size and resources of an owned object storage cluster."""

    DEFAULT_RESOURCES_CPU = "8"
    DEFAULT_RESOURCES_MEMORY = "16Gi"
    DEFAULT_RESOURCES_STORAGE = "1TiB"
    DEFAULT_TOTAL_NODES = 4
    DEFAULT_TOTAL_VOLUMES_PER_NODE = 4

    resources: dict[str, Any] = field(default_factory=_default_resources)
    total_nodes: int = DEFAULT_TOTAL_NODES
    total_volumes_per_node: int = DEFAULT_TOTAL_VOLUMES_PER_NODE

    def __post_init__(self) -> None:
        self.resources = copy.deepcopy(dict(_expect_map(self.resources, "resources")))
        _check_u32(self.total_nodes, "totalNodes")
        _check_u32(self.total_volumes_per_node, "totalVolumesPerNode")

    def to_dict(self) -> dict[str, Any]:
        return {
            "resources": copy.deepcopy(self.resources),
            "totalNodes": self.total_nodes,
            "totalVolumesPerNode": self.total_volumes_per_node,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ReplicationSpec:
        data = _expect_map(data, "replication")
        return cls(
            resources=data["resources"] if "resources" in data else _default_resources(),
            total_nodes=data.get("totalNodes", cls.DEFAULT_TOTAL_NODES),
            total_volumes_per_node=data.get(
                "totalVolumesPerNode", cls.DEFAULT_TOTAL_VOLUMES_PER_NODE
            ),
        )


@dataclass
class OwnedSpec:
    """An object storage cluster run by the data lake itself."""

    minio_console_external_service: ExternalServiceSpec = field(
        default_factory=ExternalServiceSpec
    )
    minio_external_service: ExternalServiceSpec = field(default_factory=ExternalServiceSpec)
    replication: ReplicationSpec = field(default_factory=ReplicationSpec)
    runtime_class_name: str = ""
    storage_class_name: str = "ceph-block"

    def __post_init__(self) -> None:
        for name in ("runtime_class_name", "storage_class_name"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string")

    def endpoint(self, namespace: str) -> str | None:
        return get_object_storage_endpoint(namespace)

    def to_dict(self) -> dict[str, Any]:
        return {
            "minioConsoleExternalService": self.minio_console_external_service.to_dict(),
            "minioExternalService": self.minio_external_service.to_dict(),
            **self.replication.to_dict(),
            "runtimeClassName": self.runtime_class_name,
            "storageClassName": self.storage_class_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> OwnedSpec:
        data = _expect_map(data, "owned storage")

        def service(key: str) -> ExternalServiceSpec:
            return ExternalServiceSpec.from_dict(data[key]) if key in data else ExternalServiceSpec()

        return cls(
            minio_console_external_service=service("minioConsoleExternalService"),
            minio_external_service=service("minioExternalService"),
            replication=ReplicationSpec.from_dict(data),
            runtime_class_name=data.get("runtimeClassName", ""),
            storage_class_name=data.get("storageClassName", "ceph-block"),
        )


@dataclass
class ObjectRefSpec:
    """Reference to an existing object storage endpoint and its credentials."""

    endpoint: str
    secret_ref: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.endpoint = _parse_url(self.endpoint)
        self.secret_ref = copy.deepcopy(dict(_expect_map(self.secret_ref, "secretRef")))

    def to_dict(self) -> dict[str, Any]:
        return {"endpoint": self.endpoint, "secretRef": copy.deepcopy(self.secret_ref)}

    @classmethod
    def from_dict(cls, data: Mapping) -> ObjectRefSpec:
        data = _expect_map(data, "object storage reference")
        if "endpoint" not in data:
            raise ValueError("missing field 'endpoint'")
        return cls(endpoint=data["endpoint"], secret_ref=data.get("secretRef", {}))


class ObjectStorageMode(Enum):
    """How an object storage is provided; the value is the wire tag."""

    BORROWED = "borrowed"
    CLONED = "cloned"
    OWNED = "owned"


@dataclass
class ObjectStorageSpec:
    """An object storage that is borrowed, cloned from another, or owned."""

    mode: ObjectStorageMode = ObjectStorageMode.OWNED
    reference: ObjectRefSpec | None = None
    owned: OwnedSpec | None = None

    def __post_init__(self) -> None:
        self.mode = ObjectStorageMode(self.mode)
        if self.mode is ObjectStorageMode.OWNED:
            if self.reference is not None:
                raise ValueError("an owned storage takes no reference")
        elif not isinstance(self.reference, ObjectRefSpec):
            raise ValueError(f"a {self.mode.value} storage needs a reference")
        if self.mode is ObjectStorageMode.BORROWED:
            if self.owned is not None:
                raise ValueError("a borrowed storage takes no owned settings")
        elif self.owned is None:
            self.owned = OwnedSpec()
        elif not isinstance(self.owned, OwnedSpec):
            raise ValueError(f"owned must be an OwnedSpec, got {self.owned!r}")

    def endpoint(self, namespace: str) -> str | None:
        if self.mode is ObjectStorageMode.BORROWED:
            return self.reference.endpoint
        return self.owned.endpoint(namespace)

    def is_unique(self) -> bool:
        return self.mode is not ObjectStorageMode.BORROWED

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.reference is not None:
            body.update(self.reference.to_dict())
        if self.owned is not None:
            body.update(self.owned.to_dict())
        return {self.mode.value: body}

    @classmethod
    def from_dict(cls, data: Mapping) -> ObjectStorageSpec:
        data = _expect_map(data, "object storage")
        found = _find_variant(data, {mode.value: mode for mode in ObjectStorageMode})
        if found is None:
            raise ValueError("no variant of object storage found")
        mode, body = found
        if mode is ObjectStorageMode.OWNED:
            owned = OwnedSpec() if body is None else OwnedSpec.from_dict(body)
            return cls(mode, owned=owned)
        body = _expect_map(body, f"object storage {mode.value!r}")
        reference = ObjectRefSpec.from_dict(body)
        if mode is ObjectStorageMode.CLONED:
            return cls(mode, reference=reference, owned=OwnedSpec.from_dict(body))
        return cls(mode, reference=reference)


@dataclass
class ModelStorageSpec:
    """A storage for models and whether it is the namespace's default."""

    object_storage: ObjectStorageSpec = field(default_factory=ObjectStorageSpec)
    default: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.object_storage, ObjectStorageSpec):
            raise ValueError("object_storage must be an ObjectStorageSpec")
        if not isinstance(self.default, bool):
            raise ValueError(f"default must be a boolean, got {self.default!r}")

    def endpoint(self, namespace: str) -> str | None:
        return self.object_storage.endpoint(namespace)

    def is_unique(self) -> bool:
        return self.object_storage.is_unique()

    def to_kind(self) -> StorageKind:
        return StorageKind.OBJECT_STORAGE

    def _kind_dict(self) -> dict[str, Any]:
        return {"objectStorage": self.object_storage.to_dict()}

    def to_dict(self) -> dict[str, Any]:
        return {**self._kind_dict(), "default": self.default}

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelStorageSpec:
        data = _expect_map(data, "model storage")
        return cls(object_storage=_parse_kind(data), default=data.get("default", False))


def _parse_kind(data: Mapping) -> ObjectStorageSpec:
    if "objectStorage" not in data:
        raise ValueError("no variant of storage kind found")
    body = data["objectStorage"]
    return ObjectStorageSpec() if body is None else ObjectStorageSpec.from_dict(body)


@dataclass
class ModelStorageStatus:
    """Observed state of a model storage."""

    last_updated: datetime
    state: StorageState = StorageState.PENDING
    kind: ObjectStorageSpec | None = None
    total_quota: int | None = None

    def __post_init__(self) -> None:
        self.last_updated = _parse_time(self.last_updated)
        self.state = StorageState(self.state)
        if self.kind is not None and not isinstance(self.kind, ObjectStorageSpec):
            raise ValueError("kind must be an ObjectStorageSpec")
        quota = self.total_quota
        if quota is not None and (
            isinstance(quota, bool) or not isinstance(quota, int) or not 0 <= quota <= _U128_MAX
        ):
            raise ValueError(f"totalQuota must be an unsigned 128-bit integer, got {quota!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "kind": None if self.kind is None else {"objectStorage": self.kind.to_dict()},
            "lastUpdated": _format_time(self.last_updated),
            "totalQuota": self.total_quota,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> ModelStorageStatus:
        data = _expect_map(data, "model storage status")
        if "lastUpdated" not in data:
            raise ValueError("missing field 'lastUpdated'")
        raw_state = data.get("state", StorageState.PENDING.value)
        try:
            state = StorageState(raw_state)
        except ValueError:
            raise ValueError(f"unknown storage state {raw_state!r}") from None
        raw_kind = data.get("kind")
        kind = None if raw_kind is None else _parse_kind(_expect_map(raw_kind, "kind"))
        return cls(
            last_updated=data["lastUpdated"],
            state=state,
            kind=kind,
            total_quota=data.get("totalQuota"),
        )