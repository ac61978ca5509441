class LXCManager:
    """Mixin responsável por operações de Contêineres (LXC)."""

    def clone_container(self, template_id, new_vmid, hostname, storage=None, full_clone=True):
        """Clona o template para new_vmid. Retorna o UPID da tarefa."""
        node_id = self._resolve_node_id()
        params = {
            'newid': new_vmid,
            'hostname': hostname,
            'full': 1 if full_clone else 0,
        }
        if storage: params['storage'] = storage

        return self.connection.nodes(node_id).lxc(template_id).clone.post(**params)

    def configure_container(self, ctid, **params):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).config.put(**params)

    def get_container_status(self, ctid):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).status.current.get()

    def get_container_interfaces(self, ctid):
        """Interfaces de rede vistas de dentro do CT (name, inet, hwaddr)."""
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).interfaces.get() or []

    def start_container(self, ctid):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).status.start.post()

    def stop_container(self, ctid):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).status.stop.post()

    def reboot_container(self, ctid):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).status.reboot.post()

    def delete_container(self, ctid):
        """
        Remove o container (e as regras de firewall/jobs associados via purge).
        """
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).delete(purge=1)
