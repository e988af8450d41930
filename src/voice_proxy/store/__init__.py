"""
External Data Store.

    - models.py: Subject, page and generation records; the SubjectStore interface
    - memory.py: In-memory store, optionally seeded from YAML fixtures
    - postgrest.py: Supabase PostgREST store over httpx
"""
from __future__ import annotations

from voice_proxy.core.config import StoreConfig
from voice_proxy.store.memory import InMemorySubjectStore
from voice_proxy.store.models import (
    GenerationRecord,
    GenerationState,
    Page,
    SubjectKind,
    SubjectRecord,
    SubjectStore,
    text_field,
)
from voice_proxy.store.postgrest import SupabaseSubjectStore


def create_store(config: StoreConfig) -> SubjectStore:
    """Build the configured store backend."""
    if config.backend == "supabase":
        return SupabaseSubjectStore(config)
    if config.fixtures:
        return InMemorySubjectStore.from_fixtures(config.fixtures)
    return InMemorySubjectStore()


__all__ = [
    "GenerationRecord",
    "GenerationState",
    "InMemorySubjectStore",
    "Page",
    "SubjectKind",
    "SubjectRecord",
    "SubjectStore",
    "SupabaseSubjectStore",
    "create_store",
    "text_field",
]
