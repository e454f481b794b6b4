"""knolib identity: authentication, account linking and access control."""

__version__ = "1.0.0"
