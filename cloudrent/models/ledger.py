from datetime import datetime

from cloudrent.extensions import db


class LedgerEntry(db.Model):
    """
    Registro imutável de uma alteração de saldo.
    As entradas apenas são acrescentadas; nunca atualizadas.
    """
    __tablename__ = 'ledger_entry'

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.String(36), db.ForeignKey('account.id'), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)   # negativo = débito
    type = db.Column(db.String(30), nullable=False)  # 'consumption', 'credit', ...
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'amount': self.amount,
            'type': self.type,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
