from proxmoxer import ProxmoxAPI, ResourceException
import logging
import time
import urllib3

# Proxmox com certificado auto-assinado
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class ProxmoxTaskFailedError(Exception):
    """Tarefa do Proxmox terminou com exitstatus != OK."""
    pass


class ProxmoxClient:
    """
    Conexão com o Proxmox e helpers compartilhados pelos mixins (LXC, firewall,
    snapshots, backups).

    Os métodos que disparam tarefas assíncronas retornam o UPID; quem chama
    decide quando esperar com wait_for_task().
    """

    def __init__(self, config=None, sleep=time.sleep):
        self.config = config
        self._connection = None
        self._node_id = None
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    def init_app(self, app):
        self.config = app.config
        if not self.config.get('PROXMOX_HOST'):
            self.logger.warning("PROXMOX_HOST não definido na configuração.")

    def _credentials(self):
        """Token de API quando configurado; senão usuário + senha."""
        token_name = self.config.get('PROXMOX_API_TOKEN_NAME')
        token_value = self.config.get('PROXMOX_API_TOKEN_VALUE')
        if token_name and token_value:
            return {'token_name': token_name, 'token_value': token_value}
        return {'password': self.config.get('PROXMOX_PASSWORD')}

    @property
    def connection(self):
        """Conexão preguiçosa; é recriada depois de uma falha ao resolver o nó."""
        if self._connection is not None:
            return self._connection

        if not self.config:
            raise RuntimeError("ProxmoxClient sem configuração. Chame init_app(app) primeiro.")

        host = self.config.get('PROXMOX_HOST')
        try:
            self._connection = ProxmoxAPI(
                host,
                user=self.config.get('PROXMOX_USER'),
                verify_ssl=bool(self.config.get('PROXMOX_VERIFY_SSL', False)),
                **self._credentials()
            )
        except Exception as e:
            self.logger.error(f"Falha ao conectar no Proxmox ({host}): {e}")
            raise
        return self._connection

    def _resolve_node_id(self, node_id=None):
        """Nó configurado (PROXMOX_DEFAULT_NODE) ou o primeiro nó online do cluster."""
        if node_id:
            return node_id

        configured = self.config.get('PROXMOX_DEFAULT_NODE') if self.config else None
        if configured:
            return configured

        if self._node_id:
            return self._node_id

        try:
            nodes = self.connection.nodes.get()
        except Exception:
            self._connection = None
            raise

        online = [node['node'] for node in nodes if node.get('status') == 'online']
        if not online:
            raise ResourceException(503, "Service Unavailable", "Nenhum nó online encontrado no cluster.")
        self._node_id = online[0]
        return self._node_id

    def wait_for_task(self, task_upid, node_id=None):
        """
        Bloqueia até a tarefa do Proxmox terminar.
        Retorna True em sucesso; ProxmoxTaskFailedError se exitstatus != OK.
        """
        if not task_upid or not str(task_upid).startswith('UPID:'):
            return None  # operação síncrona, sem tarefa

        node_id = self._resolve_node_id(node_id)
        timeout = self.config.get('PROXMOX_TASK_TIMEOUT', 900)
        poll_interval = self.config.get('PROXMOX_TASK_POLL_INTERVAL', 2)
        start_time = time.monotonic()

        while True:
            try:
                task = self.connection.nodes(node_id).tasks(task_upid).status.get()

                # Status: running, stopped
                if task.get('status') == 'stopped':
                    exit_status = task.get('exitstatus')
                    if exit_status == 'OK':
                        return True
                    raise ProxmoxTaskFailedError(f"Tarefa Proxmox falhou: {exit_status}")

            except ProxmoxTaskFailedError:
                raise
            except Exception as e:
                # Ignora erros de rede momentâneos durante o polling
                self.logger.debug(f"Polling da tarefa {task_upid} falhou momentaneamente: {e}")

            if (time.monotonic() - start_time) >= timeout:
                raise TimeoutError(f"Timeout ({timeout}s) aguardando tarefa {task_upid}.")

            self._sleep(poll_interval)

    def get_next_vmid(self):
        """Helper global para obter próximo ID livre."""
        cluster_next = self.connection.cluster.nextid.get()
        return int(cluster_next)
