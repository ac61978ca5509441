import logging

from cloudrent.extensions import db
from cloudrent.models import STATUS_ONLINE, STATUS_STOPPED, STATUS_PROVISIONING
from cloudrent.lifecycle.errors import InvalidStateError
from cloudrent.lifecycle.provisioning import extract_ipv4

logger = logging.getLogger(__name__)

GIB = 1024 ** 3


class InstanceControl:
    """Operações do dia a dia sobre uma instância já provisionada."""

    def __init__(self, hypervisor, vpn, cache, config):
        self.hypervisor = hypervisor
        self.vpn = vpn
        self.cache = cache
        self.config = config

    def _require_ready(self, resource):
        if resource.status == STATUS_PROVISIONING or resource.proxmox_vmid is None:
            raise InvalidStateError("A instância ainda está sendo provisionada.")

    def toggle_status(self, resource):
        self._require_ready(resource)
        vmid = resource.proxmox_vmid

        if resource.status == STATUS_ONLINE:
            logger.debug(f"Parando a instância {vmid}...")
            self.hypervisor.stop_container(vmid)
            resource.status = STATUS_STOPPED
        else:
            owner = resource.owner
            exempt = owner.role in self.config.get('CONSUMPTION_EXEMPT_ROLES', ('admin',))
            if not exempt and (owner.points or 0) <= 0:
                raise InvalidStateError("Saldo insuficiente para ligar a instância.")
            logger.debug(f"Iniciando a instância {vmid}...")
            self.hypervisor.start_container(vmid)
            resource.status = STATUS_ONLINE

        db.session.commit()
        self.cache.delete(self._stats_key(resource))
        return resource.status

    def restart(self, resource):
        self._require_ready(resource)
        return self.hypervisor.reboot_container(resource.proxmox_vmid)

    @staticmethod
    def _stats_key(resource):
        return f"instance:{resource.id}:stats"

    def get_stats(self, resource):
        if resource.proxmox_vmid is None or resource.status == STATUS_STOPPED:
            return {'cpu': 0, 'ram': 0, 'storage': 0, 'ip': None, 'status': resource.status}

        return self.cache.get_or_set(
            self._stats_key(resource),
            lambda: self._fetch_stats(resource),
            self.config.get('STATS_CACHE_TTL', 5)
        )

    def _fetch_stats(self, resource):
        status = self.hypervisor.get_container_status(resource.proxmox_vmid)
        interfaces = self.hypervisor.get_container_interfaces(resource.proxmox_vmid)

        cpu = status.get('cpu')
        cpu_percent = cpu * 100 if isinstance(cpu, (int, float)) else 0

        ram_percent = 0
        if status.get('maxmem'):
            ram_percent = status.get('mem', 0) / status['maxmem'] * 100

        # A quota contratada prevalece sobre o tamanho reportado do disco
        max_disk = status.get('maxdisk') or 0
        if resource.storage_gb:
            max_disk = resource.storage_gb * GIB
        storage_percent = status.get('disk', 0) / max_disk * 100 if max_disk else 0

        stats = {
            'cpu': round(cpu_percent, 1),
            'ram': round(ram_percent, 1),
            'storage': round(storage_percent, 1),
            'disk_bytes': status.get('disk', 0),
            'max_disk_bytes': int(max_disk),
            'ip': extract_ipv4(interfaces),
            'status': status.get('status'),
            'uptime': status.get('uptime'),
        }

        self.sync_status(resource, status.get('status'))
        return stats

    def sync_status(self, resource, hypervisor_status):
        """Alinha o status local com o Proxmox (exceto durante o provisionamento)."""
        mapped = STATUS_ONLINE if hypervisor_status == 'running' else STATUS_STOPPED
        if resource.status == STATUS_PROVISIONING or resource.status == mapped:
            return False
        logger.debug(f"[Sync] Divergência em {resource.id}: banco={resource.status}, Proxmox={hypervisor_status}")
        resource.status = mapped
        db.session.commit()
        return True

    def get_or_create_vpn_config(self, resource):
        if resource.vpn_config:
            return resource.vpn_config

        self._require_ready(resource)
        ip = extract_ipv4(self.hypervisor.get_container_interfaces(resource.proxmox_vmid))
        if not ip:
            raise InvalidStateError("A instância precisa estar ligada para gerar a configuração VPN.")

        logger.debug(f"[VPN] Gerando configuração ausente para {resource.id} ({ip})...")
        vpn_data = self.vpn.create_client(ip)
        resource.vpn_config = vpn_data['config']
        db.session.commit()
        return resource.vpn_config
