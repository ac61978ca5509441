from cloudrent.services.health.base import HealthCheckProvider, HEALTHY, UNHEALTHY


class ProxmoxHealthCheck(HealthCheckProvider):
    """Alcança o nó Proxmox através do hypervisor do motor (GET /version)."""

    def __init__(self, hypervisor):
        self.hypervisor = hypervisor

    @property
    def name(self):
        return "Proxmox Node"

    @property
    def category(self):
        return "compute"

    def check(self):
        if self.hypervisor is None:
            return {'status': UNHEALTHY, 'error': 'Hypervisor não configurado no motor.'}

        # A conexão é preguiçosa: configuração faltando estoura aqui
        try:
            version = self.hypervisor.connection.version.get()
        except Exception as e:
            return {'status': UNHEALTHY, 'error': f'Proxmox inacessível: {e}'}

        return {
            'status': HEALTHY,
            'details': {key: version.get(key) for key in ('version', 'release', 'repoid')}
        }
