import logging
import time
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from cloudrent.extensions import db
from cloudrent.models import Snapshot, STATUS_ONLINE
from cloudrent.lifecycle.errors import NotFoundError, InvalidStateError

logger = logging.getLogger(__name__)


class SnapshotService:
    """
    Snapshots com retenção limitada (MAX_SNAPSHOTS) e espelho local
    reconciliado com o Proxmox a cada listagem.
    """

    def __init__(self, hypervisor, config, clock=time.time):
        self.hypervisor = hypervisor
        self.config = config
        self._clock = clock

    @property
    def limit(self):
        return self.config.get('MAX_SNAPSHOTS', 3)

    def _require_vmid(self, resource):
        if resource.proxmox_vmid is None:
            raise InvalidStateError("Instância ainda sem VMID atribuído.")
        return resource.proxmox_vmid

    def create(self, resource, name, description=None):
        vmid = self._require_vmid(resource)

        existing = Snapshot.query.filter_by(resource_id=resource.id).order_by(Snapshot.created_at.asc()).all()
        # Depois de uma remoção falhada, a reconciliação pode trazer o snapshot de volta
        excess = max(0, len(existing) - (self.limit - 1))
        for oldest in existing[:excess]:
            logger.info(f"[Snapshot] Limite atingido para {vmid}. Removendo o mais antigo: {oldest.proxmox_snap_name}")
            try:
                self.hypervisor.wait_for_task(self.hypervisor.delete_snapshot(vmid, oldest.proxmox_snap_name))
            except Exception as e:
                # Pode não existir mais no Proxmox
                logger.warning(f"[Snapshot] Falha ao apagar {oldest.proxmox_snap_name} no Proxmox: {e}")
            db.session.delete(oldest)
        if excess:
            db.session.commit()

        snap_name = f"snap_{int(self._clock() * 1000)}"
        upid = self.hypervisor.create_snapshot(vmid, snap_name, description=description)
        self.hypervisor.wait_for_task(upid)

        snapshot = Snapshot(
            resource_id=resource.id,
            name=name or snap_name,
            proxmox_snap_name=snap_name,
            description=description
        )
        db.session.add(snapshot)
        db.session.commit()
        logger.info(f"[Snapshot] {snap_name} criado para {vmid}")
        return snapshot

    def list(self, resource):
        """
        Reconciliação nos dois sentidos:
        snapshots só no Proxmox ganham registro local; registros sem
        snapshot correspondente são apagados.
        """
        vmid = self._require_vmid(resource)
        remote = {s['name']: s for s in self.hypervisor.list_snapshots(vmid)}
        local = Snapshot.query.filter_by(resource_id=resource.id).all()
        local_names = {s.proxmox_snap_name for s in local}

        changed = False
        for row in local:
            if row.proxmox_snap_name not in remote:
                db.session.delete(row)
                changed = True

        for snap_name, info in remote.items():
            if snap_name in local_names:
                continue
            snaptime = info.get('snaptime')
            db.session.add(Snapshot(
                resource_id=resource.id,
                name=snap_name,
                proxmox_snap_name=snap_name,
                description=info.get('description'),
                created_at=datetime.utcfromtimestamp(snaptime) if snaptime else datetime.utcnow()
            ))
            changed = True

        if changed:
            try:
                db.session.commit()
                logger.debug(f"[Snapshot] Registros de {vmid} reconciliados com o Proxmox")
            except IntegrityError:
                # Outra listagem concorrente já importou o mesmo snapshot
                db.session.rollback()
                logger.debug(f"[Snapshot] Reconciliação concorrente de {vmid}; mantendo os registros existentes")

        return Snapshot.query.filter_by(resource_id=resource.id).order_by(Snapshot.created_at.desc()).all()

    def _get(self, resource, snapshot_id):
        snapshot = Snapshot.query.filter_by(id=snapshot_id, resource_id=resource.id).first()
        if snapshot is None:
            raise NotFoundError("Snapshot não encontrado.")
        return snapshot

    def restore(self, resource, snapshot_id):
        vmid = self._require_vmid(resource)
        snapshot = self._get(resource, snapshot_id)

        status = self.hypervisor.get_container_status(vmid)
        if status.get('status') == 'running':
            self.hypervisor.wait_for_task(self.hypervisor.stop_container(vmid))

        self.hypervisor.wait_for_task(self.hypervisor.rollback_snapshot(vmid, snapshot.proxmox_snap_name))
        self.hypervisor.wait_for_task(self.hypervisor.start_container(vmid))

        resource.status = STATUS_ONLINE
        db.session.commit()
        logger.info(f"[Snapshot] {vmid} restaurado para {snapshot.proxmox_snap_name}")
        return snapshot

    def delete(self, resource, snapshot_id):
        vmid = self._require_vmid(resource)
        snapshot = self._get(resource, snapshot_id)

        self.hypervisor.wait_for_task(self.hypervisor.delete_snapshot(vmid, snapshot.proxmox_snap_name))
        db.session.delete(snapshot)
        db.session.commit()
        logger.info(f"[Snapshot] {snapshot.proxmox_snap_name} removido de {vmid}")
