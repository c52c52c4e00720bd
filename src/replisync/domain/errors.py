"""Error kinds shared by the sync protocol."""

from __future__ import annotations


class ConnectivityError(ConnectionError):
    """Raised by a transport when the server could not be reached.

    Only the client orchestrator recovers from it: the round is abandoned and the
    next scheduled sync retries from the unchanged checkpoint.
    """


class EntityNotFoundError(LookupError):
    """Raised by store adapters when a write targets a key they do not hold."""

    def __init__(self, key: object) -> None:
        super().__init__(f"No entity stored under key {key!r}")
        self.key = key
