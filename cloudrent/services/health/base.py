from abc import ABC, abstractmethod
import time

HEALTHY = 'healthy'
DEGRADED = 'degraded'
UNHEALTHY = 'unhealthy'


class HealthCheckProvider(ABC):
    """
    Verificador de um subsistema externo (Proxmox, circuit breakers...).

    Um provider marcado como não crítico só consegue degradar o estado
    global; nunca o torna 'unhealthy'.
    """

    critical = True

    @property
    @abstractmethod
    def name(self):
        pass

    @property
    @abstractmethod
    def category(self):
        pass

    @abstractmethod
    def check(self):
        """Retorna {'status': ..., 'details'|'error': ...}; pode lançar exceções."""

    def run(self):
        started = time.monotonic()
        try:
            result = dict(self.check() or {})
            result.setdefault('status', HEALTHY)
        except Exception as e:
            result = {'status': UNHEALTHY, 'error': str(e)}

        result['name'] = self.name
        result['category'] = self.category
        result['latency_ms'] = round((time.monotonic() - started) * 1000, 2)
        return result
