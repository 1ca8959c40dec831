"""Application services orchestrating units of work."""
