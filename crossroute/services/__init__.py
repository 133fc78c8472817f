"""Clients for remote services used during execution."""

from .api import ApiService

__all__ = ["ApiService"]
