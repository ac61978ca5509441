import logging
import secrets
from dataclasses import dataclass

from cloudrent.extensions import db
from cloudrent.models import Account, Resource, STATUS_PROVISIONING
from cloudrent.lifecycle.errors import AllocationError

logger = logging.getLogger(__name__)

ROOT_PASSWORD_BYTES = 8


@dataclass
class AllocationRequest:
    account_id: str
    name: str
    template: str
    template_id: int | None
    cpu: int
    memory: int
    storage: int
    points_per_day: int


@dataclass
class AllocationResult:
    resource_id: str
    vmid: int
    root_password: str


class IdentifierAllocator:
    """
    Reserva um VMID único e cria a linha do recurso (status provisioning).
    Toda a sequência roda na fila de alocação (concorrência 1): duas
    requisições simultâneas nunca testam o mesmo candidato.
    """

    def __init__(self, hypervisor, queue):
        self.hypervisor = hypervisor
        self.queue = queue

    def allocate(self, request):
        # Espera pelo resultado: falhas sobem de forma síncrona para a rota
        return self.queue.submit(self._allocate, request).result()

    def _allocate(self, request):
        account = db.session.get(Account, request.account_id)
        if account is None:
            raise AllocationError("Conta não encontrada.")
        if account.is_banned:
            raise AllocationError("Conta suspensa: não é possível criar instâncias.")

        # O subdomínio do painel deriva do nome: dois nomes iguais dividiriam a mesma rota
        duplicate = Resource.query.filter(
            Resource.owner_id == account.id,
            db.func.lower(Resource.name) == request.name.lower()
        ).first()
        if duplicate is not None:
            raise AllocationError(f"Já existe uma instância chamada '{request.name}'.")

        # O contador do Proxmox só avança depois do clone; salta IDs já reservados localmente
        vmid = int(self.hypervisor.get_next_vmid())
        while db.session.query(Resource.id).filter_by(proxmox_vmid=vmid).first() is not None:
            vmid += 1
        logger.debug(f"VMID {vmid} alocado para a instância {request.name}")

        root_password = secrets.token_hex(ROOT_PASSWORD_BYTES)

        resource = Resource(
            name=request.name,
            template=request.template,
            template_id=request.template_id,
            owner_id=account.id,
            cpu_cores=request.cpu,
            memory_mb=request.memory,
            storage_gb=request.storage,
            points_per_day=request.points_per_day,
            status=STATUS_PROVISIONING,
            proxmox_vmid=vmid,
            root_password=root_password
        )
        try:
            db.session.add(resource)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return AllocationResult(resource_id=resource.id, vmid=vmid, root_password=root_password)
