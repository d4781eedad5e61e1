"""Keytar: a mock OpenID-Connect provider for local development and tests."""

__version__ = "0.4.0"
