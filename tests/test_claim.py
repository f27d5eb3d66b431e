from datetime import datetime, timezone

import pytest

from datalake.claim import (
    AffinityExpression,
    AffinityExpressionSource,
    AffinityPreference,
    AffinityRequirements,
    BindingPolicy,
    ClaimAffinity,
    ClaimState,
    DeletionPolicy,
    ModelClaimSpec,
    ModelClaimStatus,
    PreferredAffinity,
)
from datalake.storage import StorageKind


def test_default_spec_wire_form():
    assert ModelClaimSpec().to_dict() == {
        "affinity": {
            "placementAffinity": {"preferred": [], "required": []},
            "replacementAffinity": {"preferred": [], "required": []},
        },
        "allowReplacement": True,
        "bindingPolicy": "LowestCopy",
        "deletionPolicy": "Retain",
        "resources": None,
        "storage": None,
        "storageName": None,
    }


def test_empty_mapping_gives_defaults():
    spec = ModelClaimSpec.from_dict({})
    assert spec == ModelClaimSpec()
    assert spec.allow_replacement is True
    assert spec.binding_policy is BindingPolicy.LOWEST_COPY
    assert spec.deletion_policy is DeletionPolicy.RETAIN


def test_expression_default_source():
    expr = AffinityExpression.from_dict({"query": "up"})
    assert expr.source is AffinityExpressionSource.PROMETHEUS
    assert expr.to_dict() == {"query": "up", "source": "Prometheus"}


def test_expression_requires_query():
    with pytest.raises(ValueError):
        AffinityExpression.from_dict({"source": "Prometheus"})


def test_preferred_affinity_is_flattened():
    pref = PreferredAffinity(weight=10, base=AffinityPreference([AffinityExpression("q")]))
    data = pref.to_dict()
    assert data["weight"] == 10
    assert data["matchExpressions"] == [{"query": "q", "source": "Prometheus"}]
    assert PreferredAffinity.from_dict(data) == pref


@pytest.mark.parametrize("weight", [-1, 256, True, "1"])
def test_preferred_affinity_weight_range(weight):
    with pytest.raises(ValueError):
        PreferredAffinity(weight=weight)


def test_preferred_affinity_needs_weight():
    with pytest.raises(ValueError):
        PreferredAffinity.from_dict({"matchExpressions": []})


def test_full_spec_round_trip():
    spec = ModelClaimSpec(
        affinity=ClaimAffinity(
            placement_affinity=AffinityRequirements(
                preferred=[PreferredAffinity(weight=255)],
                required=[AffinityPreference([AffinityExpression("a"), AffinityExpression("b")])],
            ),
        ),
        allow_replacement=False,
        binding_policy=BindingPolicy.LOWEST_LATENCY,
        deletion_policy=DeletionPolicy.DELETE,
        resources={"requests": {"storage": "1Gi"}},
        storage=StorageKind.OBJECT_STORAGE,
        storage_name="main",
    )
    data = spec.to_dict()
    assert data["bindingPolicy"] == "LowestLatency"
    assert data["deletionPolicy"] == "Delete"
    assert data["storage"] == "ObjectStorage"
    assert ModelClaimSpec.from_dict(data) == spec


def test_spec_accepts_enum_strings():
    spec = ModelClaimSpec(binding_policy="Balanced", storage="ObjectStorage")
    assert spec.binding_policy is BindingPolicy.BALANCED
    assert spec.storage is StorageKind.OBJECT_STORAGE


def test_spec_rejects_unknown_policy():
    with pytest.raises(ValueError):
        ModelClaimSpec.from_dict({"bindingPolicy": "Fastest"})


def test_spec_rejects_non_bool_replacement():
    with pytest.raises(ValueError):
        ModelClaimSpec(allow_replacement="yes")


def test_resources_are_copied():
    resources = {"requests": {"storage": "1Gi"}}
    spec = ModelClaimSpec(resources=resources)
    resources["requests"]["storage"] = "2Gi"
    assert spec.resources == {"requests": {"storage": "1Gi"}}


def test_status_round_trip():
    status = ModelClaimStatus.from_dict(
        {
            "state": "Replacing",
            "storage": "ObjectStorage",
            "storageName": "main",
            "lastUpdated": "2024-01-02T03:04:05Z",
        }
    )
    assert status.state is ClaimState.REPLACING
    assert status.last_updated == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    data = status.to_dict()
    assert data["lastUpdated"] == "2024-01-02T03:04:05Z"
    assert ModelClaimStatus.from_dict(data) == status


def test_status_defaults_to_pending():
    status = ModelClaimStatus.from_dict({"lastUpdated": "2024-01-02T03:04:05Z"})
    assert status.state is ClaimState.PENDING
    assert status.storage is None


def test_status_requires_last_updated():
    with pytest.raises(ValueError):
        ModelClaimStatus.from_dict({"state": "Ready"})


def test_status_rejects_unknown_state():
    with pytest.raises(ValueError):
        ModelClaimStatus.from_dict({"state": "Lost", "lastUpdated": "2024-01-02T03:04:05Z"})