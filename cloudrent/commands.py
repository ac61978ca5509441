import click
from flask.cli import with_appcontext
from cloudrent.extensions import db
from cloudrent.models import Account, ServiceTemplate, LedgerEntry
from cloudrent.lifecycle.engine import get_engine


@click.command('init-db')
@click.option('--seed/--no-seed', default=True, help='Cria admin, usuário de teste e templates.')
@with_appcontext
def init_db_command(seed):
    """Limpa as tabelas existentes e cria novas com dados iniciais."""

    # 1. Limpar Banco (Cuidado em produção!)
    db.drop_all()
    db.create_all()
    click.echo('Banco de dados recriado.')

    if not seed:
        return

    # 2. Contas (as credenciais vivem no serviço de identidade)
    admin = Account(username='admin', email='admin@cloudrent.local', role='admin')
    user = Account(username='demo', email='demo@cloudrent.local', role='user', points=10000)
    db.session.add_all([admin, user])
    db.session.flush()
    db.session.add(LedgerEntry(account_id=user.id, amount=10000, type='credit', description='Saldo inicial'))

    # 3. Templates LXC (IDs dos templates já existentes no Proxmox)
    db.session.add_all([
        ServiceTemplate(slug='debian', name='Debian 12', proxmox_template_id=9000,
                        description='Container Debian 12 limpo', points_per_day=1440),
        ServiceTemplate(slug='docker', name='Docker + Portainer', proxmox_template_id=9001,
                        description='Debian 12 com Docker e Portainer', default_memory=1024,
                        default_storage=16, points_per_day=2880),
    ])

    db.session.commit()
    click.echo('Contas e Templates criados com sucesso.')


@click.command('sweep-consumption')
@with_appcontext
def sweep_consumption_command():
    """Executa uma passagem da cobrança por minuto."""
    charged = get_engine().consumption.run()
    click.echo(f'{charged} conta(s) cobradas.')


@click.command('rotate-backups')
@with_appcontext
def rotate_backups_command():
    """Executa a rotação diária de backups agora."""
    done, failed = get_engine().backups.run()
    click.echo(f'Backups: {done} ok, {failed} com erro.')


@click.command('scan-idle')
@with_appcontext
def scan_idle_command():
    """Envia lembretes para instâncias ligadas há muito tempo."""
    sent = get_engine().idle.run()
    click.echo(f'{sent} lembrete(s) enviado(s).')


def register_commands(app):
    for command in (init_db_command, sweep_consumption_command, rotate_backups_command, scan_idle_command):
        app.cli.add_command(command)
