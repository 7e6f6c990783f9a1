"""Caching Service Implementation.

Provides the concrete KeyValueCache: an in-memory L1 in front of a
persistent diskcache-backed L2.
Bounded Context: Cache Management
"""
