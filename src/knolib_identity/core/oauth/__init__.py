"""Delegated sign-in through external identity providers."""
