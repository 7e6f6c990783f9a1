"""AniList API adapters.

Contains the httpx-based GraphQL transport, the reachability probe and the
GraphQL documents used by the quiz.
"""
