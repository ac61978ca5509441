class NetworkManager:
    """Mixin para Firewall dos containers."""

    def add_firewall_rule(self, ctid, rule: dict):
        node_id = self._resolve_node_id()
        params = {
            'type': rule.get('type', 'in'),
            'action': rule.get('action', 'ACCEPT'),
            'enable': rule.get('enable', 1),
            'proto': rule.get('proto'),
            'dest': rule.get('dest'),
            'dport': rule.get('dport'),
            'source': rule.get('source'),
            'comment': rule.get('comment')
        }
        # Remove nulos
        params = {k: v for k, v in params.items() if v is not None}
        return self.connection.nodes(node_id).lxc(ctid).firewall.rules.post(**params)

    def set_firewall_options(self, ctid, **options):
        node_id = self._resolve_node_id()
        return self.connection.nodes(node_id).lxc(ctid).firewall.options.put(**options)
