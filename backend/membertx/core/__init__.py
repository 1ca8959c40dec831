"""Core infrastructure: configuration, logging, errors, extensions."""
