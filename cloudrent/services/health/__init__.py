from .base import HEALTHY, DEGRADED, UNHEALTHY
from .providers.proxmox import ProxmoxHealthCheck
from .providers.breakers import CircuitBreakerHealthCheck


def default_providers(hypervisor):
    return [
        ProxmoxHealthCheck(hypervisor),
        CircuitBreakerHealthCheck(),
    ]


def get_system_health(hypervisor, providers=None):
    """
    Executa todos os providers e agrega o estado global.
    Falha de um provider crítico -> unhealthy; de um não crítico -> degraded.
    """
    if providers is None:
        providers = default_providers(hypervisor)

    checks = [provider.run() for provider in providers]

    overall = HEALTHY
    for provider, data in zip(providers, checks):
        if data['status'] == HEALTHY:
            continue
        if provider.critical:
            overall = UNHEALTHY
        elif overall == HEALTHY:
            overall = DEGRADED

    return {"status": overall, "checks": checks}
