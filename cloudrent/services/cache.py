import threading
import time


class TTLCache:
    """
    Cache em memória com expiração por entrada.
    Usado para as estatísticas das instâncias (consulta cara ao Proxmox).
    """

    def __init__(self, default_ttl=5.0, max_size=1024, clock=time.monotonic):
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return default
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._data[key]
                return default
            return value

    def set(self, key, value, ttl=None):
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            if len(self._data) >= self.max_size and key not in self._data:
                self._evict()
            self._data[key] = (value, self._clock() + ttl)

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)

    def get_or_set(self, key, factory, ttl=None):
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value, ttl)
        return value

    def _evict(self):
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._data.items() if expires_at <= now]
        for key in expired:
            del self._data[key]
        if len(self._data) >= self.max_size:
            # Remove a entrada que expira primeiro
            oldest = min(self._data, key=lambda k: self._data[k][1])
            del self._data[oldest]

    def __len__(self):
        with self._lock:
            return len(self._data)
