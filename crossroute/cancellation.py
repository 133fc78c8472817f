"""Cooperative interaction token shared across a route's execution."""

from __future__ import annotations


class InteractionToken:
    """Tells the executor whether it may prompt the user or submit on-chain.

    The token is consulted at every point that would otherwise wait for the
    user. When interaction is disallowed the executor returns its current
    snapshot instead of blocking, and the caller re-invokes it later.
    """

    def __init__(self, allow_interaction: bool = True) -> None:
        self._allow_interaction = allow_interaction

    @property
    def allow_interaction(self) -> bool:
        return self._allow_interaction

    def allow(self) -> None:
        self._allow_interaction = True

    def disallow(self) -> None:
        self._allow_interaction = False

    def __repr__(self) -> str:
        return f"InteractionToken(allow_interaction={self._allow_interaction})"
