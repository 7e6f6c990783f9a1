"""API Resilience Implementations.

Contains the rate governor that tracks the AniList request budget and the
request executor every outbound call passes through.
Bounded Context: API Resilience
"""
