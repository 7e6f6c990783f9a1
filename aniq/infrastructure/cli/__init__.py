"""Terminal user interface built on rich."""
