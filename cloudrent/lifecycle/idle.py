import logging
from datetime import datetime, timedelta

from cloudrent.extensions import db
from cloudrent.models import Resource, STATUS_ONLINE

logger = logging.getLogger(__name__)


class IdleReminderScan:
    """
    Lembrete por e-mail para instâncias ligadas há muito tempo.
    No máximo um lembrete por instância a cada IDLE_REMINDER_COOLDOWN_DAYS.
    """

    def __init__(self, hypervisor, notifier, config, now=datetime.utcnow):
        self.hypervisor = hypervisor
        self.notifier = notifier
        self.config = config
        self._now = now

    def run(self):
        threshold = self.config.get('IDLE_UPTIME_THRESHOLD_HOURS', 72) * 3600
        cooldown = timedelta(days=self.config.get('IDLE_REMINDER_COOLDOWN_DAYS', 7))
        now = self._now()

        resources = Resource.query.filter(
            Resource.status == STATUS_ONLINE,
            Resource.proxmox_vmid.isnot(None)
        ).all()

        sent = 0
        for resource in resources:
            if resource.last_idle_notification and now - resource.last_idle_notification < cooldown:
                continue
            owner = resource.owner
            if not owner.email:
                continue

            try:
                status = self.hypervisor.get_container_status(resource.proxmox_vmid)
                if status.get('status') != 'running':
                    continue
                uptime = status.get('uptime', 0)
                if uptime <= threshold:
                    continue

                self.notifier.send_idle_reminder(owner.email, owner.username, resource.name, resource.id, uptime)
                resource.last_idle_notification = now
                db.session.commit()
                sent += 1
            except Exception as e:
                db.session.rollback()
                logger.warning(f"[Ociosidade] Falha ao verificar {resource.proxmox_vmid}: {e}")

        logger.info(f"[Ociosidade] {sent} lembrete(s) enviado(s)")
        return sent
