"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the AniList API, the disk
cache, configuration files, the terminal) by implementing the interfaces
defined in the domain layer.
"""
