# 1. Importar a Classe Base (Conexão e Helpers)
from .client import ProxmoxClient, ProxmoxTaskFailedError

# 2. Importar os Gerenciadores de Recursos (Mixins)
from .resources.lxc import LXCManager
from .resources.network import NetworkManager
from .resources.snapshot import SnapshotManager
from .resources.backup import BackupManager

# 3. Definir a Classe de Serviço Unificada (Facade)
# A ordem de herança importa: ProxmoxClient fornece a base (self.connection),
# e os outros fornecem os métodos específicos (.clone_container, .create_snapshot, etc.)
class ProxmoxService(ProxmoxClient,
                     LXCManager,
                     NetworkManager,
                     SnapshotManager,
                     BackupManager):
    """
    Serviço Unificado (Facade) do Proxmox.

    Ao instanciar esta classe, você obtém um objeto que sabe:
    1. Conectar-se ao nó (via ProxmoxClient)
    2. Gerenciar Containers (via LXCManager)
    3. Gerenciar Firewall, Snapshots e Backups

    Não existe instância global: o LifecycleEngine constrói e injeta a própria.
    """
    pass
