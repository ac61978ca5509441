import logging

from flask import current_app

from cloudrent.models import ServiceTemplate
from cloudrent.proxmox import ProxmoxService
from cloudrent.services.cache import TTLCache
from cloudrent.services.ingress_service import CloudflareIngressService
from cloudrent.services.notification_service import NotificationService
from cloudrent.services.resilience import ProtectedClient
from cloudrent.services.ssh_service import RemoteShell
from cloudrent.services.vpn_service import VpnService
from cloudrent.lifecycle.allocator import IdentifierAllocator, AllocationRequest
from cloudrent.lifecycle.backups import BackupRotation
from cloudrent.lifecycle.cleanup import CleanupWorkflow
from cloudrent.lifecycle.consumption import ConsumptionSweep
from cloudrent.lifecycle.control import InstanceControl
from cloudrent.lifecycle.domains import DomainService
from cloudrent.lifecycle.errors import AllocationError
from cloudrent.lifecycle.idle import IdleReminderScan
from cloudrent.lifecycle.provisioning import ProvisioningPipeline, ProvisioningJob
from cloudrent.lifecycle.queues import SerialQueue
from cloudrent.lifecycle.scheduler import Scheduler
from cloudrent.lifecycle.snapshots import SnapshotService

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'lifecycle'


def get_engine():
    return current_app.extensions[EXTENSION_KEY]


class LifecycleEngine:
    """
    Ponto único de montagem do motor: constrói os clientes externos a partir
    da config do Flask, envolve-os nos circuit breakers e injeta-os em cada
    componente. Os clientes podem ser passados já prontos (testes).
    """

    def __init__(self, app, hypervisor=None, vpn=None, ingress=None, shell=None, notifier=None):
        self.app = app
        config = app.config
        self.config = config

        if hypervisor is None:
            hypervisor = ProxmoxService()
            hypervisor.init_app(app)
        if vpn is None:
            vpn = VpnService(config.get('VPN_API_URL'))
        if ingress is None:
            ingress = CloudflareIngressService(
                config.get('CF_API_URL'),
                config.get('CF_ACCOUNT_ID'),
                config.get('CF_API_TOKEN'),
                config.get('CF_TUNNEL_ID')
            )
        if shell is None:
            shell = RemoteShell(
                connect_attempts=config.get('SSH_CONNECT_ATTEMPTS', 3),
                retry_delay=config.get('SSH_RESTART_DELAY', 2),
                timeout=config.get('SSH_CONNECT_TIMEOUT', 10)
            )
        if notifier is None:
            notifier = NotificationService(
                config.get('SMTP_HOST'),
                port=config.get('SMTP_PORT', 587),
                user=config.get('SMTP_USER'),
                password=config.get('SMTP_PASSWORD'),
                use_tls=config.get('SMTP_USE_TLS', True),
                sender=config.get('MAIL_FROM'),
                dashboard_url=config.get('DASHBOARD_URL', '')
            )

        if config.get('CIRCUIT_BREAKER_ENABLED', True):
            hypervisor = ProtectedClient(hypervisor, 'proxmox', passthrough=('wait_for_task', 'connection'))
            vpn = ProtectedClient(vpn, 'vpn')
            ingress = ProtectedClient(ingress, 'cloudflare')
            notifier = ProtectedClient(notifier, 'email')

        self.hypervisor = hypervisor
        self.vpn = vpn
        self.ingress = ingress
        self.shell = shell
        self.notifier = notifier
        self.cache = TTLCache(default_ttl=config.get('STATS_CACHE_TTL', 5))

        self.allocation_queue = SerialQueue(app, 'allocation')
        self.provisioning_queue = SerialQueue(app, 'provisioning')

        self.allocator = IdentifierAllocator(hypervisor, self.allocation_queue)
        self.pipeline = ProvisioningPipeline(hypervisor, vpn, ingress, shell, notifier, config)
        self.cleanup = CleanupWorkflow(hypervisor, vpn, ingress, config)
        self.consumption = ConsumptionSweep(hypervisor, config)
        self.snapshots = SnapshotService(hypervisor, config)
        self.backups = BackupRotation(hypervisor, config)
        self.idle = IdleReminderScan(hypervisor, notifier, config)
        self.domains = DomainService(hypervisor, ingress, config)
        self.control = InstanceControl(hypervisor, vpn, self.cache, config)

        self.scheduler = (
            Scheduler(app)
            .every(config.get('CONSUMPTION_INTERVAL', 60), 'consumption', self.consumption.run)
            .daily(config.get('BACKUP_SCHEDULE', (0, 0)), 'backups', self.backups.run)
            .daily(config.get('IDLE_SCAN_SCHEDULE', (9, 0)), 'idle-scan', self.idle.run)
        )

        app.extensions[EXTENSION_KEY] = self

    def start(self):
        self.allocation_queue.start()
        self.provisioning_queue.start()

    def start_scheduler(self):
        """
        Liga os jobs periódicos. Chamado apenas pelos pontos de entrada que
        servem HTTP (run.py, wsgi.py); comandos `flask` (ex: db upgrade) não agendam nada.
        """
        if not self.config.get('SCHEDULER_ENABLED', False):
            logger.info("[Agendador] Desativado por configuração (SCHEDULER_ENABLED)")
            return False
        self.scheduler.start()
        return True

    def shutdown(self, wait=True):
        self.scheduler.shutdown()
        self.allocation_queue.shutdown(wait=wait)
        self.provisioning_queue.shutdown(wait=wait)

    def request_instance(self, account_id, template_slug, name, cpu=None, memory=None, storage=None):
        """
        Reserva o VMID (síncrono) e agenda o provisionamento (assíncrono).
        Retorna (AllocationResult, Future do pipeline).
        """
        template = ServiceTemplate.query.filter_by(slug=template_slug, is_active=True).first()
        if template is None:
            raise AllocationError(f"Template '{template_slug}' não existe ou está inativo.")
        if not name or not name.strip():
            raise AllocationError("O nome da instância é obrigatório.")

        result = self.allocator.allocate(AllocationRequest(
            account_id=account_id,
            name=name.strip(),
            template=template.slug,
            template_id=template.id,
            cpu=cpu or template.default_cpu,
            memory=memory or template.default_memory,
            storage=storage or template.default_storage,
            points_per_day=template.points_per_day
        ))

        job = ProvisioningJob(
            resource_id=result.resource_id,
            vmid=result.vmid,
            root_password=result.root_password,
            template_proxmox_id=template.proxmox_template_id
        )
        future = self.provisioning_queue.submit(self.pipeline.run, job)
        logger.info(f"[Engine] Instância {result.resource_id} (VMID {result.vmid}) em fila para provisionamento")
        return result, future
