from datetime import datetime

from cloudrent.extensions import db


class IngressBinding(db.Model):
    """Subdomínio público roteado pelo túnel até uma porta do container."""
    __tablename__ = 'ingress_binding'

    id = db.Column(db.Integer, primary_key=True)
    subdomain = db.Column(db.String(120), unique=True, nullable=False)
    port = db.Column(db.Integer, nullable=False)
    is_paid = db.Column(db.Boolean, default=False, nullable=False)
    resource_id = db.Column(db.String(36), db.ForeignKey('resource.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def hostname(self, base_domain):
        return f"{self.subdomain}.{base_domain}"

    def to_dict(self):
        return {
            'id': self.id,
            'subdomain': self.subdomain,
            'port': self.port,
            'is_paid': self.is_paid,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
