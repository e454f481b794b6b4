"""Core domain - identity, OAuth and access control logic."""
