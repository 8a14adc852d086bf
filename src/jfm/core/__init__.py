"""Core infrastructure: configuration, logging, retry and run state."""
