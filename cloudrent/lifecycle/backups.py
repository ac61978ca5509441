import logging
from datetime import datetime

from cloudrent.extensions import db
from cloudrent.models import Resource, Backup, STATUS_PROVISIONING

logger = logging.getLogger(__name__)


class BackupRotation:
    """
    Rotação diária de backups vzdump: mantém no máximo MAX_BACKUPS por
    instância, apagando os mais antigos antes de criar o novo.
    """

    def __init__(self, hypervisor, config):
        self.hypervisor = hypervisor
        self.config = config

    @property
    def storage(self):
        return self.config.get('BACKUP_STORAGE', 'local')

    def run(self):
        resources = (
            Resource.query
            .filter(Resource.proxmox_vmid.isnot(None))
            .filter(Resource.status != STATUS_PROVISIONING)
            .all()
        )
        logger.info(f"[Backup] Rotina diária iniciada para {len(resources)} instância(s)")

        done, failed = 0, 0
        for resource in resources:
            try:
                self.rotate(resource)
                done += 1
            except Exception as e:
                db.session.rollback()
                failed += 1
                logger.error(f"[Backup] Falha no backup de {resource.proxmox_vmid}: {e}")

        logger.info(f"[Backup] Rotina concluída: {done} ok, {failed} com erro")
        return done, failed

    def rotate(self, resource):
        vmid = resource.proxmox_vmid
        limit = self.config.get('MAX_BACKUPS', 3)

        existing = sorted(self.hypervisor.list_backups(self.storage, vmid), key=lambda b: b.get('ctime', 0))

        # Deixa espaço para o backup que vai ser criado
        excess = max(0, len(existing) - (limit - 1))
        for old in existing[:excess]:
            volid = old['volid']
            try:
                upid = self.hypervisor.delete_volume(volid)
                if upid:
                    self.hypervisor.wait_for_task(upid)
                logger.debug(f"[Backup] Backup antigo removido: {volid}")
            except Exception as e:
                logger.warning(f"[Backup] Falha ao remover {volid}: {e}")

        upid = self.hypervisor.create_backup(vmid, storage=self.storage, mode=self.config.get('BACKUP_MODE', 'stop'))
        self.hypervisor.wait_for_task(upid)
        logger.info(f"[Backup] Backup criado para {vmid}")

        self.reconcile(resource)

    def reconcile(self, resource):
        remote = {b['volid']: b for b in self.hypervisor.list_backups(self.storage, resource.proxmox_vmid)}
        local = Backup.query.filter_by(resource_id=resource.id).all()
        known = set()

        for row in local:
            if row.volid in remote:
                known.add(row.volid)
            else:
                db.session.delete(row)

        for volid, info in remote.items():
            if volid in known:
                continue
            ctime = info.get('ctime')
            db.session.add(Backup(
                resource_id=resource.id,
                volid=volid,
                created_at=datetime.utcfromtimestamp(ctime) if ctime else datetime.utcnow()
            ))
        db.session.commit()
