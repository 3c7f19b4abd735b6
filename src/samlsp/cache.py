"""
Cache providers used to remember the ids of outstanding requests.
"""
import logging
import threading
import time


logger = logging.getLogger(__name__)

DEFAULT_KEY_EXPIRATION_PERIOD_MS = 28800000


class CacheProvider:
    """
    Base class for request id caches.

    Implementations must make each operation atomic and expire entries older
    than the configured period by themselves.
    """

    def save(self, key, value):
        """
        Stores value under key unless key is already present.

        Callers look the key up with get before saving; the return value is
        informational and may be None for providers that return nothing.

        :type key: str
        :type value: str
        :rtype: str | None

        :param key: request id
        :param value: issue instant of the request
        :return: the stored value, or None if the key was already present
        """
        raise NotImplementedError()

    def get(self, key):
        """
        :type key: str
        :rtype: str | None

        :param key: request id
        :return: the stored value, or None if missing or expired
        """
        raise NotImplementedError()

    def remove(self, key):
        """
        :type key: str
        :rtype: str | None

        :param key: request id
        :return: the removed key, or None if it was not present
        """
        raise NotImplementedError()


class InMemoryCacheProvider(CacheProvider):
    """
    In-memory request id cache.

    Entries expire key_expiration_period_ms after they were saved. Expired
    entries are dropped whenever the cache is touched.
    """

    def __init__(self, key_expiration_period_ms=DEFAULT_KEY_EXPIRATION_PERIOD_MS, clock=time.time):
        """
        :type key_expiration_period_ms: int
        :type clock: () -> float

        :param key_expiration_period_ms: lifetime of an entry
        :param clock: returns the current time in seconds
        """
        self.key_expiration_period_ms = key_expiration_period_ms
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def _is_expired(self, created_at, now):
        return (now - created_at) * 1000 >= self.key_expiration_period_ms

    def _remove_expired(self, now):
        expired = [key for key, (created_at, _) in self._entries.items() if self._is_expired(created_at, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Expired {} request id(s) from cache".format(len(expired)))

    def remove_expired(self):
        with self._lock:
            self._remove_expired(self._clock())

    def save(self, key, value):
        with self._lock:
            now = self._clock()
            self._remove_expired(now)
            if key in self._entries:
                return None
            self._entries[key] = (now, value)
            return value

    def get(self, key):
        with self._lock:
            now = self._clock()
            self._remove_expired(now)
            entry = self._entries.get(key)
            return entry[1] if entry else None

    def remove(self, key):
        with self._lock:
            if self._entries.pop(key, None) is None:
                return None
            return key

    def __len__(self):
        with self._lock:
            return len(self._entries)
