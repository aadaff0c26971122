"""Credential, session and channel-profile service for user accounts."""

__version__ = "0.1.0"
