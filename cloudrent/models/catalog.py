from cloudrent.extensions import db
from datetime import datetime

class ServiceTemplate(db.Model):
    __tablename__ = 'service_template'

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(50), unique=True, nullable=False)  # ex: 'debian', 'docker'
    name = db.Column(db.String(100), nullable=False)
    proxmox_template_id = db.Column(db.Integer, nullable=False)  # VMID do template LXC

    description = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, default=True)

    # Specs padrão deste template
    default_cpu = db.Column(db.Integer, default=1)
    default_memory = db.Column(db.Integer, default=512)
    default_storage = db.Column(db.Integer, default=8)

    # Custo diário (pontos) de uma instância online
    points_per_day = db.Column(db.Integer, default=1440, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'description': self.description,
            'points_per_day': self.points_per_day,
            'specs': {
                'cpu': self.default_cpu,
                'memory': self.default_memory,
                'storage': self.default_storage
            }
        }
