from datetime import datetime, timezone

import pytest

from datalake.fields import FieldKind, FieldKindError, FieldSpec, NativeType, ExtendedType
from datalake.model import (
    CustomResourceDefinitionRef,
    ModelSpec,
    ModelSpecKind,
    ModelState,
    ModelStatus,
)


def _fields():
    return (
        FieldSpec("id", FieldKind(NativeType.INTEGER, default=1, minimum=0)),
        FieldSpec("tags", FieldKind(NativeType.STRING_ARRAY), optional=True),
    )


def test_default_spec_is_dynamic():
    spec = ModelSpec()
    assert spec.kind is ModelSpecKind.DYNAMIC
    assert spec.to_dict() == {"dynamic": {}}


def test_fields_spec_round_trip():
    spec = ModelSpec(ModelSpecKind.FIELDS, fields=_fields())
    data = spec.to_dict()
    assert list(data) == ["fields"]
    assert ModelSpec.from_dict(data) == spec


def test_crd_spec_round_trip_and_plural():
    spec = ModelSpec(
        ModelSpecKind.CUSTOM_RESOURCE_DEFINITION_REF,
        crd=CustomResourceDefinitionRef("users.example.com"),
    )
    data = spec.to_dict()
    assert data == {"customResourceDefinitionRef": {"name": "users.example.com"}}
    parsed = ModelSpec.from_dict(data)
    assert parsed == spec
    assert parsed.crd.plural() == "users"


def test_plural_without_dot_is_whole_name():
    assert CustomResourceDefinitionRef("widgets").plural() == "widgets"


def test_unknown_spec_variant_raises():
    with pytest.raises(ValueError):
        ModelSpec.from_dict({"other": {}})


def test_crd_spec_needs_reference():
    with pytest.raises(ValueError):
        ModelSpec(ModelSpecKind.CUSTOM_RESOURCE_DEFINITION_REF)


def test_dynamic_spec_takes_no_fields():
    with pytest.raises(ValueError):
        ModelSpec(ModelSpecKind.DYNAMIC, fields=_fields())


def test_status_round_trip_keeps_timestamp_text():
    data = {"state": "Ready", "fields": None, "lastUpdated": "2024-01-02T03:04:05Z"}
    status = ModelStatus.from_dict(data)
    assert status.state is ModelState.READY
    assert status.to_dict() == data


def test_status_state_defaults_to_pending():
    status = ModelStatus.from_dict({"lastUpdated": "2024-01-02T03:04:05Z"})
    assert status.state is ModelState.PENDING
    assert status.fields is None


def test_status_needs_last_updated():
    with pytest.raises(ValueError):
        ModelStatus.from_dict({"state": "Ready"})


def test_status_timestamp_is_utc():
    status = ModelStatus.from_dict({"lastUpdated": "2024-01-02T05:04:05+02:00"})
    assert status.last_updated == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_status_rejects_naive_timestamp():
    with pytest.raises(ValueError):
        ModelStatus(last_updated=datetime(2024, 1, 2))


def test_status_fields_unchecked():
    now = datetime.now(timezone.utc)
    status = ModelStatus(last_updated=now, fields=_fields())
    assert status.fields_unchecked() == _fields()
    with pytest.raises(ValueError):
        ModelStatus(last_updated=now).fields_unchecked()


def test_status_with_fields_round_trip():
    status = ModelStatus(
        last_updated=datetime.now(timezone.utc), state=ModelState.DELETING, fields=_fields()
    )
    assert ModelStatus.from_dict(status.to_dict()) == status


def test_status_rejects_extended_fields():
    field = FieldSpec("owner", FieldKind(ExtendedType.MODEL, model="user"))
    with pytest.raises(FieldKindError):
        ModelStatus(last_updated=datetime.now(timezone.utc), fields=(field,))


def test_status_unknown_state_raises():
    with pytest.raises(ValueError):
        ModelStatus.from_dict({"state": "Gone", "lastUpdated": "2024-01-02T03:04:05Z"})