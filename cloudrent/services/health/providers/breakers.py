from cloudrent.services.health.base import HealthCheckProvider, HEALTHY, DEGRADED
from cloudrent.services import resilience


class CircuitBreakerHealthCheck(HealthCheckProvider):
    """Degradado quando algum circuito para um serviço externo não está fechado."""

    critical = False

    @property
    def name(self):
        return "Circuit Breakers"

    @property
    def category(self):
        return "resilience"

    def check(self):
        stats = resilience.get_stats()
        open_circuits = sorted(key for key, data in stats.items() if data['state'] != 'closed')
        return {
            'status': DEGRADED if open_circuits else HEALTHY,
            'details': {
                'open': open_circuits,
                'breakers': stats
            }
        }
