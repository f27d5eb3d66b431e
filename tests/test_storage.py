from datetime import datetime, timezone
from ipaddress import IPv4Address

import pytest

from datalake.storage import (
    ExternalServiceSpec,
    ModelStorageSpec,
    ModelStorageStatus,
    ObjectRefSpec,
    ObjectStorageMode,
    ObjectStorageSpec,
    OwnedSpec,
    ReplicationSpec,
    StorageKind,
    StorageState,
    get_object_storage_endpoint,
    get_object_storage_owned_endpoint,
    parse_byte_size,
    storage_quota,
)


def test_parse_byte_size_binary_units():
    assert parse_byte_size("1TiB") == 1 << 40
    assert parse_byte_size("16Gi") == 16 << 30


def test_parse_byte_size_is_case_insensitive():
    assert parse_byte_size("2kib") == parse_byte_size("2KiB")
    assert parse_byte_size("3 MB") == parse_byte_size("3M")


def test_parse_byte_size_plain_bytes():
    assert parse_byte_size("512") == 512
    assert parse_byte_size("512 B") == 512


@pytest.mark.parametrize("text", ["", "abc", "10 XB", "-1Gi", "1.2.3K"])
def test_parse_byte_size_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_byte_size(text)


def test_storage_quota_of_default_replication():
    assert storage_quota(ReplicationSpec().resources) == parse_byte_size(
        ReplicationSpec.DEFAULT_RESOURCES_STORAGE
    )


def test_storage_quota_missing_or_invalid():
    assert storage_quota(None) is None
    assert storage_quota({"limits": {"cpu": "8"}}) is None
    assert storage_quota({"requests": {"storage": "lots"}}) is None


def test_endpoints():
    assert get_object_storage_endpoint("demo") == "http://object-storage.demo.svc/"
    owned = get_object_storage_owned_endpoint("demo")
    assert owned.startswith("http://minio.demo.svc")


def test_endpoint_with_invalid_namespace_is_none():
    assert get_object_storage_endpoint("bad name") is None


def test_external_service_enabled():
    assert ExternalServiceSpec().is_enabled() is False
    assert ExternalServiceSpec(address_pool="pool").is_enabled() is True
    spec = ExternalServiceSpec(ip="10.0.0.5")
    assert spec.is_enabled() is True
    assert spec.ip == IPv4Address("10.0.0.5")


def test_external_service_rejects_bad_ip():
    with pytest.raises(ValueError):
        ExternalServiceSpec.from_dict({"ip": "10.0.0"})


def test_owned_defaults():
    owned = OwnedSpec.from_dict({})
    assert owned == OwnedSpec()
    assert owned.storage_class_name == "ceph-block"
    assert owned.runtime_class_name == ""
    assert owned.replication.total_nodes == ReplicationSpec.DEFAULT_TOTAL_NODES


def test_owned_flattens_replication():
    data = OwnedSpec(replication=ReplicationSpec(total_nodes=2)).to_dict()
    assert data["totalNodes"] == 2
    assert "replication" not in data
    assert OwnedSpec.from_dict(data).replication.total_nodes == 2


def test_replication_rejects_negative_nodes():
    with pytest.raises(ValueError):
        ReplicationSpec(total_nodes=-1)


def test_default_object_storage_is_owned_and_unique():
    spec = ObjectStorageSpec()
    assert spec.mode is ObjectStorageMode.OWNED
    assert spec.is_unique() is True
    assert spec.endpoint("demo") == get_object_storage_endpoint("demo")


def test_borrowed_storage_uses_reference_endpoint():
    ref = ObjectRefSpec(endpoint="http://storage.example.com")
    spec = ObjectStorageSpec(ObjectStorageMode.BORROWED, reference=ref)
    assert spec.is_unique() is False
    assert spec.endpoint("demo") == ref.endpoint
    assert ObjectStorageSpec.from_dict(spec.to_dict()) == spec


def test_cloned_storage_round_trip():
    spec = ObjectStorageSpec(
        ObjectStorageMode.CLONED,
        reference=ObjectRefSpec("http://storage.example.com/", {"name": "creds"}),
        owned=OwnedSpec(storage_class_name="fast"),
    )
    data = spec.to_dict()
    assert set(data) == {"cloned"}
    assert data["cloned"]["storageClassName"] == "fast"
    parsed = ObjectStorageSpec.from_dict(data)
    assert parsed == spec
    assert parsed.endpoint("demo") == get_object_storage_endpoint("demo")


def test_borrowed_storage_needs_endpoint():
    with pytest.raises(ValueError):
        ObjectStorageSpec.from_dict({"borrowed": {}})


def test_reference_rejects_relative_url():
    with pytest.raises(ValueError):
        ObjectRefSpec(endpoint="storage")


def test_model_storage_spec_round_trip():
    spec = ModelStorageSpec(default=True)
    data = spec.to_dict()
    assert set(data) == {"objectStorage", "default"}
    assert ModelStorageSpec.from_dict(data) == spec
    assert spec.to_kind() is StorageKind.OBJECT_STORAGE
    assert spec.is_unique() is True


def test_model_storage_spec_needs_kind():
    with pytest.raises(ValueError):
        ModelStorageSpec.from_dict({"default": True})


def test_model_storage_status_round_trip():
    status = ModelStorageStatus(
        last_updated=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
        state=StorageState.READY,
        kind=ObjectStorageSpec(),
        total_quota=parse_byte_size("1TiB"),
    )
    data = status.to_dict()
    assert data["lastUpdated"] == "2024-05-06T07:08:09Z"
    assert ModelStorageStatus.from_dict(data) == status


def test_model_storage_status_defaults():
    status = ModelStorageStatus.from_dict({"lastUpdated": "2024-05-06T07:08:09Z"})
    assert status.state is StorageState.PENDING
    assert status.kind is None
    assert status.total_quota is None


def test_model_storage_status_rejects_negative_quota():
    with pytest.raises(ValueError):
        ModelStorageStatus(last_updated=datetime.now(timezone.utc), total_quota=-1)