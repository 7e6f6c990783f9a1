"""Domain models: value objects and entities shared across layers."""
