import uuid
from datetime import datetime

from cloudrent.extensions import db


# Máquina de estados: provisioning -> online | error ; online <-> stopped
STATUS_PROVISIONING = 'provisioning'
STATUS_ONLINE = 'online'
STATUS_STOPPED = 'stopped'
STATUS_ERROR = 'error'


class Resource(db.Model):
    __tablename__ = 'resource'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    proxmox_vmid = db.Column(db.Integer, unique=True, nullable=True)
    name = db.Column(db.String(100), nullable=False)

    template = db.Column(db.String(50), nullable=False)  # slug do ServiceTemplate
    template_id = db.Column(db.Integer, db.ForeignKey('service_template.id'), nullable=True)
    owner_id = db.Column(db.String(36), db.ForeignKey('account.id'), nullable=False, index=True)

    # Snapshot das specs no momento da criação (para calcular consumo)
    cpu_cores = db.Column(db.Integer, default=1)
    memory_mb = db.Column(db.Integer, default=512)
    storage_gb = db.Column(db.Integer, default=8)
    points_per_day = db.Column(db.Integer, default=0, nullable=False)

    status = db.Column(db.String(20), default=STATUS_PROVISIONING, nullable=False, index=True)
    root_password = db.Column(db.String(64))
    vpn_config = db.Column(db.Text)
    last_idle_notification = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    snapshots = db.relationship('Snapshot', backref='resource', lazy='select',
                                cascade='all, delete-orphan', order_by='Snapshot.created_at')
    backups = db.relationship('Backup', backref='resource', lazy='select',
                              cascade='all, delete-orphan', order_by='Backup.created_at')
    domains = db.relationship('IngressBinding', backref='resource', lazy='select',
                              cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'vmid': self.proxmox_vmid,
            'name': self.name,
            'template': self.template,
            'status': self.status,
            'specs': {
                'cpu': self.cpu_cores,
                'memory': self.memory_mb,
                'storage': self.storage_gb
            },
            'points_per_day': self.points_per_day,
            'has_vpn': bool(self.vpn_config),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
