import uuid
from datetime import datetime

from cloudrent.extensions import db


def _uuid():
    return str(uuid.uuid4())


class Account(db.Model):
    __tablename__ = 'account'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    role = db.Column(db.String(20), default='user', nullable=False)

    # Saldo em pontos; nunca fica negativo (ver ConsumptionSweep)
    points = db.Column(db.Float, default=0.0, nullable=False)

    is_banned = db.Column(db.Boolean, default=False, nullable=False)
    ban_reason = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    resources = db.relationship('Resource', backref='owner', lazy='dynamic')
    ledger = db.relationship('LedgerEntry', backref='account', lazy='dynamic')

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'points': round(self.points or 0, 4),
            'is_banned': self.is_banned,
        }
