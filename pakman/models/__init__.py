"""pakman data models — Pydantic v2, frozen."""

from pakman.models.meta import Meta, load_meta_yaml

__all__ = ["Meta", "load_meta_yaml"]
