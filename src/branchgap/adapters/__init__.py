"""Adapters for external coverage tooling."""
