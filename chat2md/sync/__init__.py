"""Sync engine, its persisted stores and triggers."""
