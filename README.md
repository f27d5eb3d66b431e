# datalake

Typed Python models for the resources of a data lake: the schema of a
model, the storages that hold model data, claims for storage, and the
bindings between models and storages.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `datalake.fields`: field descriptions of a model's schema. `FieldSpec`
  names a field and holds its `FieldKind`. A `FieldKind` has a `NativeType`
  or an `ExtendedType` together with the settings that type takes. A string
  field takes a `StringKind` and an object field an `ObjectKind`. Lists of
  fields are read with `parse_fields` and written with `dump_fields`.
  Malformed descriptions raise `FieldKindError`, a `ValueError`.
- `datalake.model`: `ModelSpec` (dynamic, a list of fields, or a
  `CustomResourceDefinitionRef`) and `ModelStatus` with its `ModelState`. The
  fields of a status must all be native. `ModelStatus.fields_unchecked()`
  raises while the fields are unknown.
- `datalake.storage`: `ModelStorageSpec` wraps an `ObjectStorageSpec`, which
  is borrowed, cloned or owned. An owned storage is described by `OwnedSpec`
  and `ReplicationSpec`, a referenced one by `ObjectRefSpec`. The module also
  has `ModelStorageStatus`, `parse_byte_size`, `storage_quota`,
  `get_object_storage_endpoint` and `get_object_storage_owned_endpoint`.
- `datalake.claim`: `ModelClaimSpec` and `ModelClaimStatus`, with
  `ClaimAffinity`, `AffinityRequirements`, `PreferredAffinity`,
  `AffinityPreference`, `AffinityExpression`, `BindingPolicy` and
  `DeletionPolicy`.
- `datalake.binding`: `ModelStorageBindingSpec`, `BindingStorage` (owned or
  cloned from a source), `SyncPolicy` and `ModelStorageBindingStatus`.

Every spec and status class converts to and from plain JSON-style
dictionaries with `to_dict()` and `from_dict()`. Keys are camelCase and
missing keys take their defaults. Variants are written as a mapping whose
single key is the variant's tag, e.g. `{"integer": {...}}` or
`{"owned": {...}}`. Timestamps are read as RFC 3339 strings and written in
UTC with a trailing `Z`. Invalid input raises `ValueError`.

## Examples

```python
from datalake.fields import parse_fields, dump_fields

fields = parse_fields([
    {"name": "/id/", "uuid": {}},
    {"name": "/score/", "number": {"minimum": 0.0}, "optional": True},
])
assert dump_fields(fields)[0]["name"] == "/id/"
```

```python
from datalake.storage import ModelStorageSpec, parse_byte_size

spec = ModelStorageSpec.from_dict({"objectStorage": {"owned": {}}})
assert spec.is_unique()
assert spec.endpoint("demo") == "http://object-storage.demo.svc/"
assert parse_byte_size("1TiB") == 1024**4
```

```python
from datalake.binding import BindingStorage, SyncPolicy

storage = BindingStorage.from_dict(
    {"cloned": {"source": "shared", "target": "local",
                "syncPolicy": {"pull": "Never", "push": "Never"}}}
)
source, policy = storage.source_with_policy()
assert source == "shared" and policy.is_none()
```

## What this package does not do

The package describes resources and checks them. It does not act on them.
It has no object store and no cache for object data. It has no command-line
tool and no client that talks to a cluster. It does not create, watch or
reconcile these resources, and it does not read or query dataset contents.