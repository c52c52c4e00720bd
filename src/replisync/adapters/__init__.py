"""Adapters plugging storage and transport into the sync core."""
