"""Application services: catalog fetchers, question assembly, hints and game state."""
