"""Mindshare chain-state cache and synchronization service."""

__version__ = "0.1.0"
