import logging

from cloudrent.extensions import db
from cloudrent.models import Account, Resource, Snapshot, Backup, IngressBinding, LedgerEntry
from cloudrent.lifecycle.naming import generate_subdomain

logger = logging.getLogger(__name__)


class CleanupWorkflow:
    """
    Remoção de recursos e contas. Nenhuma falha externa (Proxmox, VPN,
    Cloudflare) impede a remoção dos registros locais.
    """

    def __init__(self, hypervisor, vpn, ingress, config):
        self.hypervisor = hypervisor
        self.vpn = vpn
        self.ingress = ingress
        self.config = config

    def collect_hostnames(self, resources):
        """Hostnames de todos os bindings + o do painel de gestão, sem repetidos."""
        base_domain = self.config.get('INGRESS_BASE_DOMAIN')
        prefix = self.config.get('MANAGEMENT_PANEL_PREFIX', 'portainer')
        hostnames = []
        for resource in resources:
            candidates = [binding.hostname(base_domain) for binding in resource.domains]
            candidates.append(f"{generate_subdomain(prefix, resource.owner.username, resource.name)}.{base_domain}")
            for hostname in candidates:
                if hostname not in hostnames:
                    hostnames.append(hostname)
        return hostnames

    def delete_resource(self, resource):
        resource_id = resource.id
        hostnames = self.collect_hostnames([resource])

        self._teardown_instance(resource)
        self._remove_ingress(hostnames)

        try:
            db.session.delete(resource)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info(f"[Remoção] Instância {resource_id} removida")

    def delete_account(self, account):
        account_id = account.id
        resources = account.resources.all()

        # Uma única chamada ao Cloudflare para todos os hostnames da conta
        self._remove_ingress(self.collect_hostnames(resources))

        for resource in resources:
            self._teardown_instance(resource)

        resource_ids = [r.id for r in resources]
        try:
            if resource_ids:
                Snapshot.query.filter(Snapshot.resource_id.in_(resource_ids)).delete(synchronize_session=False)
                Backup.query.filter(Backup.resource_id.in_(resource_ids)).delete(synchronize_session=False)
                IngressBinding.query.filter(IngressBinding.resource_id.in_(resource_ids)).delete(synchronize_session=False)
                Resource.query.filter(Resource.id.in_(resource_ids)).delete(synchronize_session=False)
            LedgerEntry.query.filter_by(account_id=account_id).delete(synchronize_session=False)
            Account.query.filter_by(id=account_id).delete(synchronize_session=False)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info(f"[Remoção] Conta {account_id} removida com {len(resource_ids)} instância(s)")

    def _teardown_instance(self, resource):
        vmid = resource.proxmox_vmid

        if vmid is not None:
            try:
                upid = self.hypervisor.stop_container(vmid)
                self.hypervisor.wait_for_task(upid)
            except Exception as e:
                # Já parado ou inexistente
                logger.debug(f"[Remoção] Stop de {vmid} ignorado: {e}")

            try:
                upid = self.hypervisor.delete_container(vmid)
                self.hypervisor.wait_for_task(upid)
            except Exception as e:
                logger.warning(f"[Remoção] Falha ao apagar CT {vmid} no Proxmox: {e}")

        if resource.vpn_config:
            try:
                self.vpn.delete_client(resource.vpn_config)
            except Exception as e:
                logger.warning(f"[Remoção] Falha ao remover cliente VPN de {resource.id}: {e}")

    def _remove_ingress(self, hostnames):
        if not hostnames:
            return 0
        try:
            return self.ingress.remove_multiple_ingress(hostnames)
        except Exception as e:
            logger.warning(f"[Remoção] Falha ao remover rotas do túnel ({len(hostnames)}): {e}")
            return 0
