"""Persistence layer: engine, sessions and per-entity repositories."""
