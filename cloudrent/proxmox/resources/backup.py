class BackupManager:
    """Mixin para backups vzdump e volumes de storage."""

    def create_backup(self, ctid, storage='local', mode='stop'):
        """
        Dispara um vzdump. Em modo 'stop' o CT fica parado durante o dump
        (consistência total) e volta ao estado anterior no fim.
        """
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).vzdump.post(
            vmid=ctid,
            storage=storage,
            mode=mode,
            compress='zstd'
        )

    def list_backups(self, storage, ctid=None):
        node_id = self._resolve_node_id()
        params = {'content': 'backup'}
        if ctid is not None: params['vmid'] = ctid
        return self.connection.nodes(node_id).storage(storage).content.get(**params) or []

    def delete_volume(self, volid):
        """Remove um volume pelo volid completo (ex: local:backup/vzdump-lxc-...)."""
        node_id = self._resolve_node_id()
        storage = volid.split(':', 1)[0]
        return self.connection.nodes(node_id).storage(storage).content(volid).delete()
