"""Adapters - storage implementations."""
