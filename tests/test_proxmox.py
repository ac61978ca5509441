import pytest
from proxmoxer import ResourceException

from cloudrent.proxmox import ProxmoxTaskFailedError


def test_clone_container_returns_upid(service, mock_pve_connection):
    """O clone retorna o UPID; quem chama decide quando esperar."""
    mock_lxc = mock_pve_connection.nodes.return_value.lxc.return_value
    mock_lxc.clone.post.return_value = "UPID:pve:clone"

    upid = service.clone_container(9000, 101, 'abc123-alice-debian-deadbeef', storage='local-lvm')

    assert upid == "UPID:pve:clone"
    mock_pve_connection.nodes.assert_called_with('pve')
    mock_pve_connection.nodes.return_value.lxc.assert_called_with(9000)
    mock_lxc.clone.post.assert_called_once_with(
        newid=101, hostname='abc123-alice-debian-deadbeef', full=1, storage='local-lvm'
    )


def test_get_next_vmid_casts_to_int(service, mock_pve_connection):
    mock_pve_connection.cluster.nextid.get.return_value = "105"
    assert service.get_next_vmid() == 105


def test_wait_for_task_success(service, mock_pve_connection):
    status = mock_pve_connection.nodes.return_value.tasks.return_value.status
    status.get.side_effect = [
        {'status': 'running'},
        {'status': 'stopped', 'exitstatus': 'OK'},
    ]

    assert service.wait_for_task("UPID:pve:task") is True
    mock_pve_connection.nodes.return_value.tasks.assert_called_with("UPID:pve:task")


def test_wait_for_task_failure_raises(service, mock_pve_connection):
    mock_pve_connection.nodes.return_value.tasks.return_value.status.get.return_value = {
        'status': 'stopped', 'exitstatus': 'clone failed: no space left'
    }
    with pytest.raises(ProxmoxTaskFailedError) as excinfo:
        service.wait_for_task("UPID:pve:task")
    assert 'no space left' in str(excinfo.value)


def test_wait_for_task_is_bounded(app, service, mock_pve_connection):
    app.config['PROXMOX_TASK_TIMEOUT'] = 0
    mock_pve_connection.nodes.return_value.tasks.return_value.status.get.return_value = {'status': 'running'}

    with pytest.raises(TimeoutError):
        service.wait_for_task("UPID:pve:task")


def test_wait_for_task_ignores_non_upid(service, mock_pve_connection):
    assert service.wait_for_task(None) is None
    assert service.wait_for_task({'data': None}) is None
    mock_pve_connection.nodes.return_value.tasks.assert_not_called()


def test_get_container_interfaces(service, mock_pve_connection):
    mock_lxc = mock_pve_connection.nodes.return_value.lxc.return_value
    mock_lxc.interfaces.get.return_value = [{'name': 'eth0', 'inet': '10.0.0.2/24'}]

    assert service.get_container_interfaces(101) == [{'name': 'eth0', 'inet': '10.0.0.2/24'}]


def test_add_firewall_rule_drops_empty_fields(service, mock_pve_connection):
    mock_fw = mock_pve_connection.nodes.return_value.lxc.return_value.firewall

    service.add_firewall_rule(101, {'type': 'in', 'action': 'ACCEPT', 'comment': 'entrada'})

    mock_fw.rules.post.assert_called_once_with(type='in', action='ACCEPT', enable=1, comment='entrada')


def test_set_firewall_options(service, mock_pve_connection):
    mock_fw = mock_pve_connection.nodes.return_value.lxc.return_value.firewall
    service.set_firewall_options(101, enable=1)
    mock_fw.options.put.assert_called_once_with(enable=1)


def test_list_snapshots_hides_current(service, mock_pve_connection):
    mock_lxc = mock_pve_connection.nodes.return_value.lxc.return_value
    mock_lxc.snapshot.get.return_value = [
        {'name': 'snap_1', 'snaptime': 1700000000},
        {'name': 'current', 'running': 1},
    ]
    assert [s['name'] for s in service.list_snapshots(101)] == ['snap_1']


def test_create_snapshot(service, mock_pve_connection):
    mock_lxc = mock_pve_connection.nodes.return_value.lxc.return_value
    mock_lxc.snapshot.post.return_value = "UPID:pve:snapshot"

    assert service.create_snapshot(101, "snap_1", "antes do deploy") == "UPID:pve:snapshot"
    mock_lxc.snapshot.post.assert_called_once_with(snapname="snap_1", description="antes do deploy")


def test_create_backup_uses_vzdump(service, mock_pve_connection):
    node = mock_pve_connection.nodes.return_value
    node.vzdump.post.return_value = "UPID:pve:vzdump"

    assert service.create_backup(101, storage='backups', mode='stop') == "UPID:pve:vzdump"
    node.vzdump.post.assert_called_once_with(vmid=101, storage='backups', mode='stop', compress='zstd')


def test_delete_volume_resolves_storage_from_volid(service, mock_pve_connection):
    node = mock_pve_connection.nodes.return_value
    service.delete_volume('backups:backup/vzdump-lxc-101-2024_01_01-00_00_00.tar.zst')

    node.storage.assert_called_with('backups')
    node.storage.return_value.content.assert_called_with('backups:backup/vzdump-lxc-101-2024_01_01-00_00_00.tar.zst')
    node.storage.return_value.content.return_value.delete.assert_called_once()


def test_proxmox_error_propagates(service, mock_pve_connection):
    """Erros da API sobem ao chamador (tratados pelo handler global)."""
    mock_lxc = mock_pve_connection.nodes.return_value.lxc.return_value
    mock_lxc.status.start.post.side_effect = ResourceException(500, "Internal", "CT is locked")

    with pytest.raises(ResourceException):
        service.start_container(101)


def test_resolve_node_falls_back_to_first_online(app, service, mock_pve_connection):
    app.config['PROXMOX_DEFAULT_NODE'] = None
    mock_pve_connection.nodes.get.return_value = [
        {'node': 'pve1', 'status': 'offline'},
        {'node': 'pve2', 'status': 'online'},
    ]
    assert service._resolve_node_id() == 'pve2'


def test_resolve_node_without_online_nodes(app, service, mock_pve_connection):
    app.config['PROXMOX_DEFAULT_NODE'] = None
    mock_pve_connection.nodes.get.return_value = [{'node': 'pve1', 'status': 'offline'}]

    with pytest.raises(ResourceException):
        service._resolve_node_id()


def test_connection_prefers_api_token(app, mocker):
    from cloudrent.proxmox import ProxmoxService

    api = mocker.patch('cloudrent.proxmox.client.ProxmoxAPI')
    app.config.update({
        'PROXMOX_HOST': 'pve.test', 'PROXMOX_USER': 'svc@pve',
        'PROXMOX_API_TOKEN_NAME': 'cloudrent', 'PROXMOX_API_TOKEN_VALUE': 'secret',
    })

    svc = ProxmoxService(config=app.config)
    assert svc.connection is api.return_value
    assert svc.connection is api.return_value

    api.assert_called_once_with('pve.test', user='svc@pve', verify_ssl=False,
                                token_name='cloudrent', token_value='secret')
