class SnapshotManager:
    """Mixin para gerenciamento de Snapshots LXC (estado pontual do disco)."""

    def list_snapshots(self, ctid):
        node_id = self._resolve_node_id()
        snapshots = self.connection.nodes(node_id).lxc(ctid).snapshot.get() or []
        # O Proxmox inclui sempre uma entrada virtual 'current' (estado atual)
        return [s for s in snapshots if s.get('name') != 'current']

    def create_snapshot(self, ctid, snapname, description=None):
        node_id = self._resolve_node_id()
        params = {'snapname': snapname}
        if description: params['description'] = description
        return self.connection.nodes(node_id).lxc(ctid).snapshot.post(**params)

    def rollback_snapshot(self, ctid, snapname):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).snapshot(snapname).rollback.post()

    def delete_snapshot(self, ctid, snapname):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).snapshot(snapname).delete()
