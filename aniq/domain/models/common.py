"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like media ids, cache keys and
GraphQL documents, keeping signatures readable and consistent.
"""

from typing import Any, Dict, Mapping, NewType

# === AniList Identifiers ===
AnimeId = NewType("AnimeId", int)              # Media id of an anime (a "candidate")
CharacterId = NewType("CharacterId", int)      # Character id (a "sub-entity")

# === Caching Context ===
CacheNamespace = NewType("CacheNamespace", str)  # Versioned namespace, e.g. 'aniq_animeDetails_v1'
CacheKey = NewType("CacheKey", str)              # Key inside a namespace

# === Transport Context ===
GraphQLQuery = NewType("GraphQLQuery", str)      # GraphQL document text
GraphQLVariables = Dict[str, Any]
ResponseHeaders = Mapping[str, str]              # Case-insensitive mapping in practice (httpx.Headers)

# Bump when the shape of cached values changes; old entries are never read again.
CACHE_VERSION = "v1"


def versioned_namespace(name: str) -> CacheNamespace:
    """Embeds the cache version tag into a namespace name."""
    return CacheNamespace(f"{name}_{CACHE_VERSION}")
