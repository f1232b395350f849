"""Adapters for external services and file formats."""
