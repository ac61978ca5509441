import logging
import socket
import time
from dataclasses import dataclass, field
from datetime import datetime

import psutil

from cloudrent.extensions import db
from cloudrent.models import Resource, IngressBinding, STATUS_ONLINE, STATUS_ERROR
from cloudrent.lifecycle.naming import technical_hostname, sanitize_username, generate_subdomain
from cloudrent.lifecycle.steps import StepRunner, StepFailed, SKIP

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningJob:
    resource_id: str
    vmid: int
    root_password: str
    template_proxmox_id: int


@dataclass
class PipelineContext:
    job: ProvisioningJob
    resource: Resource
    upid: str | None = None
    ip: str | None = None
    notes: dict = field(default_factory=dict)


def extract_ipv4(interfaces):
    """IP de eth0 (sem máscara); loopback é ignorado."""
    eth0 = next((i for i in interfaces or [] if i.get('name') == 'eth0'), None)
    if not eth0 or not eth0.get('inet'):
        return None
    candidate = eth0['inet'].split('/')[0]
    if not candidate or candidate.startswith('127.'):
        return None
    return candidate


def detect_backend_ip(configured=None):
    """
    Endereço do host visto pelos CTs.
    Prioridade: BACKEND_IP configurado > 192.168.x.x > qualquer IPv4 externo.
    """
    if configured:
        return configured

    addresses = [
        addr.address
        for addrs in psutil.net_if_addrs().values()
        for addr in addrs
        if addr.family == socket.AF_INET and not addr.address.startswith('127.')
    ]
    for address in addresses:
        if address.startswith('192.168.'):
            return address
    if addresses:
        return addresses[0]
    logger.warning("[Firewall] Nenhum IPv4 externo encontrado no host; bloqueio das portas do host será pulado")
    return None


class ProvisioningPipeline:
    """
    Leva um recurso de 'provisioning' até 'online' (ou 'error').

    Passos críticos (clone, espera do clone, inicialização) interrompem o fluxo e
    deixam o recurso em 'error'. Os restantes são best-effort: falham, ficam
    registrados no log, e o recurso continua utilizável sem essa funcionalidade.
    Sem IP, os passos que dependem do endereço são pulados e o recurso fica
    'online' assim mesmo.
    """

    def __init__(self, hypervisor, vpn, ingress, shell, notifier, config, sleep=time.sleep):
        self.hypervisor = hypervisor
        self.vpn = vpn
        self.ingress = ingress
        self.shell = shell
        self.notifier = notifier
        self.config = config
        self._sleep = sleep

    def _build_runner(self):
        has_ip = lambda ctx: ctx.ip is not None
        return (
            StepRunner('Provisionamento', logger)
            .add('clone', self._clone)
            .add('await_clone', self._await_clone)
            .add('tag', self._tag, critical=False)
            .add('start', self._start)
            .add('await_address', self._await_address, critical=False)
            .add('bootstrap_shell', self._bootstrap_shell, critical=False, when=has_ip)
            .add('notify_credentials', self._notify_credentials, critical=False,
                 when=lambda ctx: ctx.notes.get('shell_ready', False))
            .add('firewall', self._firewall, critical=False)
            .add('vpn', self._vpn, critical=False, when=has_ip)
            .add('ingress', self._ingress, critical=False, when=has_ip)
        )

    def run(self, job):
        resource = db.session.get(Resource, job.resource_id)
        if resource is None:
            logger.warning(f"[Provisionamento] Recurso {job.resource_id} já não existe; nada a fazer.")
            return None

        logger.debug(f"[Fila] Iniciando processamento do VMID {job.vmid}...")
        ctx = PipelineContext(job=job, resource=resource)
        try:
            report = self._build_runner().run(ctx)
        except StepFailed as e:
            logger.error(f"[Provisionamento] Criação falhou para {job.vmid} no passo '{e.step}': {e.cause}")
            self._set_status(job.resource_id, STATUS_ERROR)
            return STATUS_ERROR
        except Exception as e:
            logger.error(f"[Provisionamento] Criação falhou para {job.vmid}: {e}")
            self._set_status(job.resource_id, STATUS_ERROR)
            return STATUS_ERROR

        if ctx.ip is None:
            logger.error(f"[Provisionamento] Sem IP para {job.vmid}; instância online sem SSH/VPN/domínio.")
        self._set_status(job.resource_id, STATUS_ONLINE)
        logger.info(f"[Provisionamento] Instância {job.resource_id} ONLINE (passos: {', '.join(report.completed)})")
        return STATUS_ONLINE

    def _set_status(self, resource_id, status):
        db.session.rollback()
        resource = db.session.get(Resource, resource_id)
        if resource is None:
            # Removido à força durante o pipeline
            return
        resource.status = status
        db.session.commit()

    # --- Passos ---

    def _clone(self, ctx):
        resource = ctx.resource
        hostname = technical_hostname(resource.owner_id, resource.owner.username, resource.template, resource.id)
        ctx.upid = self.hypervisor.clone_container(
            ctx.job.template_proxmox_id,
            ctx.job.vmid,
            hostname,
            storage=self.config.get('PROXMOX_CLONE_STORAGE')
        )

    def _await_clone(self, ctx):
        self.hypervisor.wait_for_task(ctx.upid)
        logger.debug(f"[Provisionamento] Clone concluído para {ctx.job.vmid}")

    def _tag(self, ctx):
        resource = ctx.resource
        date_tag = datetime.utcnow().strftime('%Y-%m-%d')
        tags = ';'.join([sanitize_username(resource.owner.username), resource.template.lower(), date_tag])
        self.hypervisor.configure_container(ctx.job.vmid, tags=tags)

    def _start(self, ctx):
        upid = self.hypervisor.start_container(ctx.job.vmid)
        self.hypervisor.wait_for_task(upid)
        logger.debug(f"[Provisionamento] LXC {ctx.job.vmid} iniciado")

    def _await_address(self, ctx):
        attempts = self.config.get('IP_MAX_ATTEMPTS', 30)
        delay = self.config.get('IP_POLL_DELAY', 2)

        for _ in range(attempts):
            self._sleep(delay)
            try:
                ip = extract_ipv4(self.hypervisor.get_container_interfaces(ctx.job.vmid))
            except Exception as e:
                logger.debug(f"[Provisionamento] Interfaces de {ctx.job.vmid} indisponíveis: {e}")
                ip = None
            if ip:
                ctx.ip = ip
                logger.debug(f"[Provisionamento] VM {ctx.job.vmid} ativa em {ip}")
                return ip

        logger.warning(f"[Provisionamento] Timeout esperando o IP de {ctx.job.vmid}")
        return SKIP

    def _bootstrap_shell(self, ctx):
        """
        Ordem importa: a senha root é a última a mudar, senão a própria
        sessão que define a senha do admin deixa de conseguir autenticar.
        """
        self._sleep(self.config.get('SSH_READY_DELAY', 10))

        ip = ctx.ip
        admin = self.config.get('ADMIN_USER', 'cloudrent')
        password = ctx.job.root_password
        creds = {'username': 'root', 'password': self.config.get('LXC_SSH_PASSWORD')}

        self.shell.exec_command(ip, (
            "sed -i 's/^PasswordAuthentication no/PasswordAuthentication yes/' /etc/ssh/sshd_config"
            " && sed -i 's/^#PasswordAuthentication yes/PasswordAuthentication yes/' /etc/ssh/sshd_config"
            " && sed -i 's/^#PermitRootLogin.*/PermitRootLogin yes/' /etc/ssh/sshd_config"
            " && sed -i 's/^PermitRootLogin.*/PermitRootLogin yes/' /etc/ssh/sshd_config"
            " && service ssh restart"
        ), **creds)
        self._sleep(self.config.get('SSH_RESTART_DELAY', 2))

        self.shell.exec_command(ip, f"id -u {admin} >/dev/null 2>&1 || useradd -m -s /bin/bash {admin}", **creds)
        self.shell.exec_command(ip, f"usermod -aG sudo {admin}", **creds)
        self.shell.exec_command(ip, f'echo "{admin}:{password}" | chpasswd && chage -d 0 {admin}', **creds)
        self.shell.exec_command(ip, f'echo "root:{password}" | chpasswd', **creds)

        ctx.notes['shell_ready'] = True
        logger.debug(f"[Provisionamento] Usuário '{admin}' configurado para {ctx.job.vmid}")

    def _notify_credentials(self, ctx):
        owner = ctx.resource.owner
        if not owner.email:
            return SKIP
        self.notifier.send_instance_credentials(
            owner.email, owner.username, ctx.resource.name, ctx.ip,
            ctx.job.root_password, self.config.get('ADMIN_USER', 'cloudrent')
        )

    def _firewall(self, ctx):
        vmid = ctx.job.vmid
        backend_ip = detect_backend_ip(self.config.get('BACKEND_IP'))

        if backend_ip:
            # Impede o CT de atacar portas sensíveis do host
            for port in self.config.get('HOST_SENSITIVE_PORTS', []):
                self.hypervisor.add_firewall_rule(vmid, {
                    'type': 'out',
                    'action': 'DROP',
                    'dest': backend_ip,
                    'dport': port,
                    'proto': 'tcp',
                    'comment': f"Bloqueia acesso à porta {port} do host"
                })

        self.hypervisor.add_firewall_rule(vmid, {
            'type': 'in',
            'action': 'ACCEPT',
            'comment': 'Permite todo o tráfego de entrada'
        })
        self.hypervisor.add_firewall_rule(vmid, {
            'type': 'out',
            'action': 'DROP',
            'dest': self.config.get('GATEWAY_IP'),
            'comment': 'Bloqueia acesso à interface de administração do gateway'
        })
        self.hypervisor.set_firewall_options(vmid, enable=1)
        logger.debug(f"[Provisionamento] Firewall configurada para {vmid}")

    def _vpn(self, ctx):
        vpn_data = self.vpn.create_client(ctx.ip)
        resource = ctx.resource
        resource.vpn_config = vpn_data['config']
        db.session.commit()
        logger.debug(f"[Provisionamento] VPN configurada para {ctx.job.vmid}")

    def _ingress(self, ctx):
        resource = ctx.resource
        subdomain = generate_subdomain(
            self.config.get('MANAGEMENT_PANEL_PREFIX', 'portainer'),
            resource.owner.username,
            resource.name
        )
        port = self.config.get('MANAGEMENT_PANEL_PORT', 9000)
        hostname = f"{subdomain}.{self.config.get('INGRESS_BASE_DOMAIN')}"

        self.ingress.add_ingress(hostname, f"http://{ctx.ip}:{port}")
        db.session.add(IngressBinding(subdomain=subdomain, port=port, is_paid=False, resource_id=resource.id))
        db.session.commit()
        logger.debug(f"[Provisionamento] Domínio do painel criado: {hostname}")
