import pytest
from unittest.mock import MagicMock
from flask_jwt_extended import create_access_token

from cloudrent import create_app
from cloudrent.config import TestingConfig
from cloudrent.extensions import db
from cloudrent.services import resilience


@pytest.fixture
def hypervisor():
    """
    ProxmoxService falso injetado no motor.
    Por padrão: próximo VMID 100, tarefas com UPID e IP em eth0.
    """
    hv = MagicMock(name='hypervisor')
    hv.get_next_vmid.return_value = 100
    hv.clone_container.return_value = "UPID:pve:clone"
    hv.start_container.return_value = "UPID:pve:start"
    hv.stop_container.return_value = "UPID:pve:stop"
    hv.delete_container.return_value = "UPID:pve:delete"
    hv.wait_for_task.return_value = True
    hv.get_container_interfaces.return_value = [
        {'name': 'lo', 'inet': '127.0.0.1/8'},
        {'name': 'eth0', 'inet': '192.168.1.50/24'},
    ]
    hv.list_snapshots.return_value = []
    hv.list_backups.return_value = []
    return hv


@pytest.fixture
def vpn():
    client = MagicMock(name='vpn')
    client.create_client.return_value = {
        'clientIp': '10.8.0.2',
        'publicKey': 'pub',
        'config': "[Interface]\nPrivateKey = abc\nAddress = 10.8.0.2/32\n"
    }
    return client


@pytest.fixture
def ingress():
    return MagicMock(name='ingress')


@pytest.fixture
def shell():
    return MagicMock(name='shell')


@pytest.fixture
def notifier():
    return MagicMock(name='notifier')


@pytest.fixture
def app(hypervisor, vpn, ingress, shell, notifier):
    """
    Cria a instância do Flask configurada para TESTES.
    1. Usa 'TestingConfig' (SQLite em memória, sem agendador, sem esperas).
    2. Injeta clientes externos falsos no LifecycleEngine.
    3. Cria e destroi as tabelas a cada teste.
    """
    app = create_app(TestingConfig, engine_overrides={
        'hypervisor': hypervisor,
        'vpn': vpn,
        'ingress': ingress,
        'shell': shell,
        'notifier': notifier,
    })
    app.config.update({
        'INGRESS_BASE_DOMAIN': 'cloudrent.test',
    })

    with app.app_context():
        db.create_all()

        yield app

        app.extensions['lifecycle'].shutdown(wait=True)
        db.session.remove()
        db.drop_all()

    resilience.reset_all()


@pytest.fixture
def engine(app):
    return app.extensions['lifecycle']


@pytest.fixture
def client(app):
    """Client HTTP simulado para fazer requisições nas rotas."""
    return app.test_client()


@pytest.fixture
def app_context(app):
    """Alguns testes pedem apenas o contexto ativo."""
    with app.app_context():
        yield


@pytest.fixture
def mock_pve_connection(mocker):
    """
    Mocka a classe ProxmoxAPI globalmente.
    Impede que o sistema tente conectar na rede real.
    """
    mock_api = mocker.patch('cloudrent.proxmox.client.ProxmoxAPI')
    return mock_api.return_value


@pytest.fixture
def service(app, mock_pve_connection):
    """
    ProxmoxService real (mixins) com o mock de conexão já injetado.
    """
    from cloudrent.proxmox import ProxmoxService

    svc = ProxmoxService(config=app.config, sleep=lambda _: None)
    svc._connection = mock_pve_connection
    return svc


# --- Dados ---

@pytest.fixture
def make_account(app):
    from cloudrent.models import Account

    def _make(username='alice', points=1000.0, role='user', email=None, **kwargs):
        account = Account(
            username=username,
            email=email if email is not None else f"{username}@example.com",
            points=points,
            role=role,
            **kwargs
        )
        db.session.add(account)
        db.session.commit()
        return account
    return _make


@pytest.fixture
def account(make_account):
    return make_account()


@pytest.fixture
def template(app):
    from cloudrent.models import ServiceTemplate

    tmpl = ServiceTemplate(slug='debian', name='Debian 12', proxmox_template_id=9000, points_per_day=1440)
    db.session.add(tmpl)
    db.session.commit()
    return tmpl


@pytest.fixture
def make_resource(app):
    from cloudrent.models import Resource, STATUS_ONLINE

    counter = {'vmid': 200}

    def _make(owner, name='web', status=STATUS_ONLINE, points_per_day=1440, vmid=None, **kwargs):
        if vmid is None:
            counter['vmid'] += 1
            vmid = counter['vmid']
        resource = Resource(
            name=name,
            template='debian',
            owner_id=owner.id,
            status=status,
            points_per_day=points_per_day,
            proxmox_vmid=vmid,
            **kwargs
        )
        db.session.add(resource)
        db.session.commit()
        return resource
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(account):
        token = create_access_token(identity=account.id)
        return {'Authorization': f'Bearer {token}'}
    return _headers
