import logging

from cloudrent.extensions import db
from cloudrent.models import Account, Resource, LedgerEntry, STATUS_ONLINE, STATUS_STOPPED

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 1440


class ConsumptionSweep:
    """
    Cobrança por minuto das instâncias ligadas.

    Roda a cada CONSUMPTION_INTERVAL segundos. Saldo e entrada no ledger
    são gravados na mesma transação; quando o saldo chega a zero, as
    instâncias da conta são desligadas.
    """

    def __init__(self, hypervisor, config):
        self.hypervisor = hypervisor
        self.config = config

    def daily_cost(self, resources):
        surcharge = self.config.get('PAID_DOMAIN_POINTS_PER_DAY', 100)
        total = 0
        for resource in resources:
            total += resource.points_per_day or 0
            total += surcharge * sum(1 for d in resource.domains if d.is_paid)
        return total

    def run(self):
        exempt = tuple(self.config.get('CONSUMPTION_EXEMPT_ROLES', ('admin',)))
        account_ids = [
            row[0] for row in
            db.session.query(Account.id)
            .join(Resource, Resource.owner_id == Account.id)
            .filter(Resource.status == STATUS_ONLINE)
            .filter(Account.role.notin_(exempt))
            .distinct()
            .all()
        ]

        charged = 0
        for account_id in account_ids:
            try:
                if self._charge(account_id):
                    charged += 1
            except Exception as e:
                db.session.rollback()
                logger.error(f"[Consumo] Erro ao cobrar conta {account_id}: {e}")

        if charged:
            logger.debug(f"[Consumo] {charged} conta(s) cobradas")
        return charged

    def _charge(self, account_id):
        account = db.session.get(Account, account_id)
        online = account.resources.filter_by(status=STATUS_ONLINE).all()
        if not online:
            return False

        per_minute = self.daily_cost(online) / MINUTES_PER_DAY
        if per_minute <= 0:
            return False

        balance = account.points or 0.0
        new_balance = max(0.0, balance - per_minute)
        deducted = balance - new_balance

        account.points = new_balance
        db.session.add(LedgerEntry(
            account_id=account.id,
            amount=-deducted,
            type='consumption',
            description=f"Consumo de {len(online)} instância(s) ({per_minute:.4f} pts/min)"
        ))
        db.session.commit()

        if new_balance <= 0:
            self._suspend(account, online)
        return True

    def _suspend(self, account, online):
        logger.warning(f"[Consumo] Saldo esgotado para {account.username}. Desligando {len(online)} instância(s).")

        for resource in online:
            if resource.proxmox_vmid is None:
                continue
            try:
                self.hypervisor.stop_container(resource.proxmox_vmid)
            except Exception as e:
                logger.error(f"[Consumo] Falha ao parar CT {resource.proxmox_vmid}: {e}")

        ids = [r.id for r in online]
        Resource.query.filter(Resource.id.in_(ids)).update(
            {Resource.status: STATUS_STOPPED}, synchronize_session=False
        )
        db.session.commit()
