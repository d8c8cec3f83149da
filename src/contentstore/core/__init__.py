"""Shared infrastructure: settings, logging, connections and base types."""
