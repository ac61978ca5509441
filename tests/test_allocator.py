import threading

import pytest

from cloudrent.extensions import db
from cloudrent.lifecycle.allocator import AllocationRequest
from cloudrent.lifecycle.errors import AllocationError
from cloudrent.models import Resource, STATUS_PROVISIONING


def _request(account, name='web'):
    return AllocationRequest(
        account_id=account.id, name=name, template='debian', template_id=None,
        cpu=1, memory=512, storage=8, points_per_day=1440
    )


def test_allocate_creates_provisioning_row(engine, account, hypervisor):
    result = engine.allocator.allocate(_request(account))

    assert result.vmid == 100
    assert len(result.root_password) == 16
    db.session.expire_all()
    resource = db.session.get(Resource, result.resource_id)
    assert resource.status == STATUS_PROVISIONING
    assert resource.proxmox_vmid == 100
    assert resource.owner_id == account.id


def test_allocate_skips_vmids_already_reserved(engine, account, make_resource, hypervisor):
    make_resource(account, vmid=100)
    make_resource(account, vmid=101)

    result = engine.allocator.allocate(_request(account, name='db'))
    assert result.vmid == 102


def test_concurrent_allocations_get_distinct_vmids(engine, make_account, hypervisor):
    """O contador do Proxmox retorna sempre o mesmo ID: a fila garante unicidade."""
    accounts = [make_account(username=f"user{i}") for i in range(6)]
    account_ids = [a.id for a in accounts]
    results = []
    errors = []
    lock = threading.Lock()

    def worker(account_id):
        try:
            request = AllocationRequest(
                account_id=account_id, name='web', template='debian', template_id=None,
                cpu=1, memory=512, storage=8, points_per_day=1440
            )
            result = engine.allocator.allocate(request)
            with lock:
                results.append(result.vmid)
        except Exception as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=worker, args=(aid,)) for aid in account_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
    assert sorted(results) == [100, 101, 102, 103, 104, 105]


def test_allocate_rejects_banned_account(engine, make_account, hypervisor):
    banned = make_account(username='mallory', is_banned=True, ban_reason='abuso')

    with pytest.raises(AllocationError):
        engine.allocator.allocate(_request(banned))
    hypervisor.get_next_vmid.assert_not_called()


def test_allocate_rejects_unknown_account(engine, account):
    request = _request(account)
    request.account_id = 'nao-existe'
    with pytest.raises(AllocationError):
        engine.allocator.allocate(request)


def test_hypervisor_failure_propagates_without_row(engine, account, hypervisor):
    hypervisor.get_next_vmid.side_effect = RuntimeError("proxmox fora do ar")

    with pytest.raises(RuntimeError):
        engine.allocator.allocate(_request(account))

    db.session.expire_all()
    assert Resource.query.count() == 0


def test_allocate_rejects_duplicate_name_for_same_owner(engine, account, make_account, make_resource, hypervisor):
    make_resource(account, name='web')

    with pytest.raises(AllocationError):
        engine.allocator.allocate(_request(account, name='WEB'))
    hypervisor.get_next_vmid.assert_not_called()

    # Outro dono pode usar o mesmo nome
    bob = make_account(username='bob')
    assert engine.allocator.allocate(_request(bob, name='web')).vmid == 100
