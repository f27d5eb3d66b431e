"""Typed resource models for a data lake: model schemas, storages, claims and bindings."""

__version__ = "0.1.0"
__all__ = ["fields", "model", "storage", "claim", "binding"]