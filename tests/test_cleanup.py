from cloudrent.extensions import db
from cloudrent.models import (
    Account, Resource, IngressBinding, Snapshot, Backup, LedgerEntry, STATUS_ERROR
)


def _bind(resource, subdomain, paid=False):
    binding = IngressBinding(subdomain=subdomain, port=80, is_paid=paid, resource_id=resource.id)
    db.session.add(binding)
    db.session.commit()
    return binding


def test_delete_resource_full_teardown(engine, account, make_resource, hypervisor, vpn, ingress):
    resource = make_resource(account, name='web', vpn_config='[Interface]\nPrivateKey = x\n')
    _bind(resource, 'portainer-alice-web')
    _bind(resource, 'api-alice-web')
    db.session.add(Snapshot(resource_id=resource.id, name='s', proxmox_snap_name='snap_1'))
    db.session.add(Backup(resource_id=resource.id, volid='local:backup/vzdump-lxc-201.tar.zst'))
    db.session.commit()
    resource_id, vmid = resource.id, resource.proxmox_vmid

    engine.cleanup.delete_resource(resource)

    hypervisor.stop_container.assert_called_once_with(vmid)
    hypervisor.delete_container.assert_called_once_with(vmid)
    vpn.delete_client.assert_called_once_with('[Interface]\nPrivateKey = x\n')
    # Hostnames repetidos (binding do painel == hostname derivado) saem uma vez
    ingress.remove_multiple_ingress.assert_called_once_with([
        'portainer-alice-web.cloudrent.test',
        'api-alice-web.cloudrent.test',
    ])

    assert db.session.get(Resource, resource_id) is None
    assert IngressBinding.query.count() == 0
    assert Snapshot.query.count() == 0
    assert Backup.query.count() == 0


def test_delete_resource_survives_external_failures(engine, account, make_resource, hypervisor, vpn, ingress):
    resource = make_resource(account, status=STATUS_ERROR, vpn_config='cfg')
    resource_id = resource.id
    hypervisor.stop_container.side_effect = RuntimeError("CT já parado")
    hypervisor.delete_container.side_effect = RuntimeError("CT não existe")
    vpn.delete_client.side_effect = RuntimeError("vpn fora do ar")
    ingress.remove_multiple_ingress.side_effect = RuntimeError("cloudflare fora do ar")

    engine.cleanup.delete_resource(resource)

    assert db.session.get(Resource, resource_id) is None


def test_delete_resource_without_vmid_skips_hypervisor(engine, account, make_resource, hypervisor):
    resource = make_resource(account)
    resource.proxmox_vmid = None
    db.session.commit()

    engine.cleanup.delete_resource(resource)

    hypervisor.stop_container.assert_not_called()
    hypervisor.delete_container.assert_not_called()
    assert Resource.query.count() == 0


def test_delete_account_batches_ingress_and_removes_everything(
        engine, account, make_account, make_resource, hypervisor, vpn, ingress):
    first = make_resource(account, name='web', vpn_config='cfg-1')
    second = make_resource(account, name='db', vpn_config='cfg-2')
    _bind(first, 'shop-alice-web')
    _bind(second, 'api-alice-db')
    db.session.add(LedgerEntry(account_id=account.id, amount=-1, type='consumption'))
    db.session.add(Snapshot(resource_id=second.id, name='s', proxmox_snap_name='snap_1'))
    db.session.commit()

    other = make_account(username='bob')
    untouched = make_resource(other, name='web')
    account_id, untouched_id = account.id, untouched.id

    engine.cleanup.delete_account(account)

    # Uma única chamada com todos os hostnames da conta
    ingress.remove_multiple_ingress.assert_called_once()
    hostnames = ingress.remove_multiple_ingress.call_args[0][0]
    assert sorted(hostnames) == sorted([
        'shop-alice-web.cloudrent.test',
        'portainer-alice-web.cloudrent.test',
        'portainer-alice-db.cloudrent.test',
        'api-alice-db.cloudrent.test',
    ])
    assert hypervisor.delete_container.call_count == 2
    assert vpn.delete_client.call_count == 2

    db.session.expire_all()
    assert db.session.get(Account, account_id) is None
    assert Resource.query.filter_by(owner_id=account_id).count() == 0
    assert LedgerEntry.query.filter_by(account_id=account_id).count() == 0
    assert Snapshot.query.count() == 0
    assert IngressBinding.query.count() == 0
    assert db.session.get(Resource, untouched_id) is not None


def test_delete_account_survives_external_failures(engine, account, make_resource, hypervisor, ingress):
    make_resource(account)
    account_id = account.id
    hypervisor.delete_container.side_effect = RuntimeError("proxmox fora do ar")
    ingress.remove_multiple_ingress.side_effect = RuntimeError("cloudflare fora do ar")

    engine.cleanup.delete_account(account)

    db.session.expire_all()
    assert db.session.get(Account, account_id) is None
    assert Resource.query.count() == 0
