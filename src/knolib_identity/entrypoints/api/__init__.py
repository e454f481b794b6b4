"""HTTP API for the identity service."""
