from datetime import datetime

from cloudrent.extensions import db


class Snapshot(db.Model):
    __tablename__ = 'snapshot'
    __table_args__ = (
        db.UniqueConstraint('resource_id', 'proxmox_snap_name', name='uq_snapshot_resource_snap'),
    )

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.String(36), db.ForeignKey('resource.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    proxmox_snap_name = db.Column(db.String(64), nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'proxmox_snap_name': self.proxmox_snap_name,
            'description': self.description,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Backup(db.Model):
    """Espelho local de um arquivo vzdump armazenado no storage do Proxmox."""
    __tablename__ = 'backup'

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(db.String(36), db.ForeignKey('resource.id'), nullable=False, index=True)
    volid = db.Column(db.String(255), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'volid': self.volid,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
