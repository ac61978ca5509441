from datetime import datetime, timedelta

import pytest

from cloudrent.extensions import db
from cloudrent.lifecycle.errors import DomainError, NotFoundError, InvalidStateError
from cloudrent.lifecycle.idle import IdleReminderScan
from cloudrent.lifecycle.scheduler import seconds_until
from cloudrent.models import IngressBinding, Resource, STATUS_ONLINE, STATUS_STOPPED, STATUS_PROVISIONING


@pytest.fixture
def resource(account, make_resource):
    return make_resource(account, name='web', vmid=500)


# --- Domínios ---

def test_create_binding_registers_ingress(engine, resource, ingress):
    binding = engine.domains.create_binding(resource, '8080', 'Shop!')

    assert binding.subdomain == 'shop-alice-web'
    assert binding.port == 8080
    assert binding.is_paid is False
    ingress.add_ingress.assert_called_once_with('shop-alice-web.cloudrent.test', 'http://192.168.1.50:8080')


@pytest.mark.parametrize('suffix', [None, '', 'ab', 'a-b!'])
def test_create_binding_rejects_short_suffix(engine, resource, suffix, ingress):
    with pytest.raises(DomainError):
        engine.domains.create_binding(resource, 80, suffix)
    ingress.add_ingress.assert_not_called()


@pytest.mark.parametrize('port', [0, 70000, 'http', None])
def test_create_binding_rejects_bad_port(engine, resource, port):
    with pytest.raises(DomainError):
        engine.domains.create_binding(resource, port, 'shop')


def test_subdomain_must_be_globally_unique(engine, resource):
    engine.domains.create_binding(resource, 80, 'shop')
    with pytest.raises(DomainError):
        engine.domains.create_binding(resource, 81, 'shop')


def test_free_cap_then_paid(engine, resource):
    for suffix in ('one', 'two', 'three'):
        engine.domains.create_binding(resource, 80, suffix)

    with pytest.raises(DomainError):
        engine.domains.create_binding(resource, 80, 'four')

    paid = engine.domains.create_binding(resource, 80, 'four', paid=True)
    assert paid.is_paid is True
    assert IngressBinding.query.filter_by(resource_id=resource.id, is_paid=False).count() == 3


def test_create_binding_requires_ip(engine, resource, hypervisor, ingress):
    hypervisor.get_container_interfaces.return_value = []
    with pytest.raises(DomainError):
        engine.domains.create_binding(resource, 80, 'shop')
    ingress.add_ingress.assert_not_called()
    assert IngressBinding.query.count() == 0


def test_delete_binding(engine, resource, ingress):
    binding = engine.domains.create_binding(resource, 80, 'shop')
    binding_id = binding.id

    engine.domains.delete_binding(resource, binding_id)

    ingress.remove_ingress.assert_called_once_with('shop-alice-web.cloudrent.test')
    assert db.session.get(IngressBinding, binding_id) is None

    with pytest.raises(NotFoundError):
        engine.domains.delete_binding(resource, binding_id)


# --- Controle ---

def test_toggle_stops_and_starts(engine, resource, hypervisor):
    assert engine.control.toggle_status(resource) == STATUS_STOPPED
    hypervisor.stop_container.assert_called_once_with(500)

    assert engine.control.toggle_status(resource) == STATUS_ONLINE
    hypervisor.start_container.assert_called_once_with(500)


def test_toggle_refuses_start_without_balance(engine, make_account, make_resource, hypervisor):
    broke = make_account(username='dave', points=0)
    resource = make_resource(broke, status=STATUS_STOPPED)

    with pytest.raises(InvalidStateError):
        engine.control.toggle_status(resource)
    hypervisor.start_container.assert_not_called()


def test_toggle_refuses_provisioning(engine, account, make_resource):
    resource = make_resource(account, status=STATUS_PROVISIONING)
    with pytest.raises(InvalidStateError):
        engine.control.toggle_status(resource)


def test_restart(engine, resource, hypervisor):
    engine.control.restart(resource)
    hypervisor.reboot_container.assert_called_once_with(500)


def test_stats_are_computed_and_cached(engine, resource, hypervisor):
    resource.storage_gb = 10
    db.session.commit()
    hypervisor.get_container_status.return_value = {
        'status': 'running', 'cpu': 0.1234, 'mem': 256, 'maxmem': 1024,
        'disk': 5 * 1024 ** 3, 'maxdisk': 20 * 1024 ** 3, 'uptime': 3600,
    }

    stats = engine.control.get_stats(resource)
    again = engine.control.get_stats(resource)

    assert stats == again
    assert stats['cpu'] == 12.3
    assert stats['ram'] == 25.0
    # Quota contratada (10 GB) prevalece sobre o maxdisk
    assert stats['storage'] == 50.0
    assert stats['ip'] == '192.168.1.50'
    assert hypervisor.get_container_status.call_count == 1


def test_stats_for_stopped_instance_skip_hypervisor(engine, account, make_resource, hypervisor):
    resource = make_resource(account, status=STATUS_STOPPED)
    assert engine.control.get_stats(resource)['cpu'] == 0
    hypervisor.get_container_status.assert_not_called()


def test_sync_status(engine, resource, account, make_resource):
    assert engine.control.sync_status(resource, 'stopped') is True
    assert resource.status == STATUS_STOPPED
    assert engine.control.sync_status(resource, 'stopped') is False

    pending = make_resource(account, status=STATUS_PROVISIONING)
    assert engine.control.sync_status(pending, 'running') is False
    assert pending.status == STATUS_PROVISIONING


def test_vpn_config_generated_once(engine, resource, vpn):
    first = engine.control.get_or_create_vpn_config(resource)
    second = engine.control.get_or_create_vpn_config(resource)

    assert first == second
    vpn.create_client.assert_called_once_with('192.168.1.50')


def test_vpn_config_requires_address(engine, resource, hypervisor):
    hypervisor.get_container_interfaces.return_value = [{'name': 'eth0', 'inet': '127.0.0.1/8'}]
    with pytest.raises(InvalidStateError):
        engine.control.get_or_create_vpn_config(resource)


# --- Lembretes de ociosidade ---

def _scan(engine, now):
    return IdleReminderScan(engine.hypervisor, engine.notifier, engine.config, now=lambda: now)


def test_idle_reminder_sent_and_stamped(engine, resource, hypervisor, notifier):
    now = datetime(2024, 1, 10, 9, 0)
    hypervisor.get_container_status.return_value = {'status': 'running', 'uptime': 73 * 3600}

    assert _scan(engine, now).run() == 1

    notifier.send_idle_reminder.assert_called_once_with('alice@example.com', 'alice', 'web', resource.id, 73 * 3600)
    assert db.session.get(Resource, resource.id).last_idle_notification == now


def test_idle_reminder_respects_cooldown_and_threshold(engine, resource, hypervisor, notifier):
    now = datetime(2024, 1, 10, 9, 0)
    hypervisor.get_container_status.return_value = {'status': 'running', 'uptime': 100 * 3600}
    resource.last_idle_notification = now - timedelta(days=6)
    db.session.commit()

    assert _scan(engine, now).run() == 0

    resource.last_idle_notification = now - timedelta(days=8)
    db.session.commit()
    hypervisor.get_container_status.return_value = {'status': 'running', 'uptime': 72 * 3600}
    assert _scan(engine, now).run() == 0
    notifier.send_idle_reminder.assert_not_called()


def test_idle_reminder_failure_is_isolated(engine, account, make_resource, hypervisor, notifier):
    make_resource(account, name='a', vmid=601)
    make_resource(account, name='b', vmid=602)

    def status(vmid):
        if vmid == 601:
            raise RuntimeError("proxmox fora do ar")
        return {'status': 'running', 'uptime': 80 * 3600}

    hypervisor.get_container_status.side_effect = status
    assert _scan(engine, datetime(2024, 1, 10)).run() == 1


# --- Agendador ---

def test_seconds_until_next_daily_run():
    assert seconds_until(9, 0, datetime(2024, 1, 1, 8, 0)) == 3600
    assert seconds_until(0, 0, datetime(2024, 1, 1, 23, 30)) == 1800
    # Exatamente à hora: próxima execução amanhã
    assert seconds_until(9, 0, datetime(2024, 1, 1, 9, 0)) == 24 * 3600
