"""Connectivity Oracle: an advisory "is the network available" signal."""
from typing import Callable, Optional

from logging_config import get_logger

logger = get_logger("connectivity")


class ConnectivityOracle:
    """Best-effort reachability flag.

    Nothing here talks to the server. The answer comes from a flag the host
    application flips (``set_online``) or from an optional ``check`` callable;
    a check that raises counts as offline.
    """

    def __init__(self, online: bool = True, check: Optional[Callable[[], bool]] = None):
        self._online = online
        self._check = check

    def is_online(self) -> bool:
        if self._check is None:
            return self._online
        try:
            return bool(self._check())
        except Exception as e:
            logger.debug("Connectivity check failed: %s", e)
            return False

    def set_online(self, online: bool) -> None:
        if online != self._online:
            logger.info("Connectivity changed: %s", "online" if online else "offline")
        self._online = online
