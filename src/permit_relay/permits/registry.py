"""
Replay registry: the set of consumed permit fingerprints.

The registry is an explicit object owned by the validator and injected into
it; there is no module-level instance. ``check_and_mark`` is the only
operation that needs mutual exclusion. It is guarded by a
``threading.Lock``; the critical section never awaits.
"""

import logging
import threading
from typing import Dict, Union

from .fingerprints import normalize_fingerprint

logger = logging.getLogger(__name__)


class ReplayRegistry:
    """In-process map of fingerprint -> consumed."""

    def __init__(self) -> None:
        self._consumed: Dict[str, bool] = {}
        self._lock = threading.Lock()

    def check_and_mark(self, fingerprint: Union[str, bytes]) -> bool:
        """
        Atomically mark ``fingerprint`` consumed.

        Returns:
            True if this call consumed it, False if it was already consumed.
        """
        key = normalize_fingerprint(fingerprint)
        with self._lock:
            if self._consumed.get(key):
                return False
            self._consumed[key] = True
        logger.debug("Fingerprint %s consumed", key)
        return True

    def is_used(self, fingerprint: Union[str, bytes]) -> bool:
        key = normalize_fingerprint(fingerprint)
        with self._lock:
            return self._consumed.get(key, False)

    def release(self, fingerprint: Union[str, bytes]) -> bool:
        """
        Return a consumed fingerprint to Unseen.

        Only ``PermitValidator.signature_rejected`` calls this, and only under
        ``SignatureRejectionPolicy.RELEASE``.

        Returns:
            True if the fingerprint was consumed and is now released.
        """
        key = normalize_fingerprint(fingerprint)
        with self._lock:
            released = self._consumed.pop(key, None) is not None
        if released:
            logger.info("Fingerprint %s released", key)
        return released

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)

    def __contains__(self, fingerprint: object) -> bool:
        if not isinstance(fingerprint, (str, bytes, bytearray)):
            return False
        return self.is_used(fingerprint)
