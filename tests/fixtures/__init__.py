"""Shared builders and fake collaborators for crossroute tests."""
