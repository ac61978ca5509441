import logging
import re

from cloudrent.extensions import db
from cloudrent.models import IngressBinding
from cloudrent.lifecycle.errors import DomainError, NotFoundError
from cloudrent.lifecycle.naming import generate_subdomain
from cloudrent.lifecycle.provisioning import extract_ipv4

logger = logging.getLogger(__name__)

MIN_SUFFIX_LENGTH = 3


def validate_suffix(suffix):
    """Retorna o sufixo limpo (a-z0-9) ou lança DomainError."""
    if not suffix:
        raise DomainError("O sufixo do domínio é obrigatório.")
    clean = re.sub(r'[^a-z0-9]', '', suffix.lower())
    if len(clean) < MIN_SUFFIX_LENGTH:
        raise DomainError(f"O sufixo deve ter pelo menos {MIN_SUFFIX_LENGTH} caracteres alfanuméricos.")
    return clean


class DomainService:
    """Subdomínios públicos (túnel Cloudflare) associados a uma instância."""

    def __init__(self, hypervisor, ingress, config):
        self.hypervisor = hypervisor
        self.ingress = ingress
        self.config = config

    @property
    def base_domain(self):
        return self.config.get('INGRESS_BASE_DOMAIN')

    def list(self, resource):
        return IngressBinding.query.filter_by(resource_id=resource.id).order_by(IngressBinding.created_at.asc()).all()

    def create_binding(self, resource, port, suffix, paid=False):
        suffix = validate_suffix(suffix)

        try:
            port = int(port)
        except (TypeError, ValueError):
            raise DomainError("Porta inválida.")
        if not 1 <= port <= 65535:
            raise DomainError("Porta fora do intervalo 1-65535.")

        free_cap = self.config.get('FREE_DOMAINS_PER_RESOURCE', 3)
        free_count = sum(1 for d in resource.domains if not d.is_paid)
        is_paid = free_count >= free_cap
        if is_paid and not paid:
            raise DomainError(f"Limite de {free_cap} domínios gratuitos atingido; é necessário um domínio pago.")

        subdomain = generate_subdomain(suffix, resource.owner.username, resource.name)
        if IngressBinding.query.filter_by(subdomain=subdomain).first() is not None:
            raise DomainError(f"O domínio {subdomain} já está ativo.")

        if resource.proxmox_vmid is None:
            raise DomainError("A instância precisa de um IP para associar um domínio.")
        ip = extract_ipv4(self.hypervisor.get_container_interfaces(resource.proxmox_vmid))
        if not ip:
            raise DomainError("A instância precisa de um IP para associar um domínio.")

        hostname = f"{subdomain}.{self.base_domain}"
        self.ingress.add_ingress(hostname, f"http://{ip}:{port}")

        binding = IngressBinding(subdomain=subdomain, port=port, is_paid=is_paid, resource_id=resource.id)
        db.session.add(binding)
        db.session.commit()
        logger.info(f"[Domínio] {hostname} -> {ip}:{port} (pago={is_paid})")
        return binding

    def delete_binding(self, resource, binding_id):
        binding = IngressBinding.query.filter_by(id=binding_id, resource_id=resource.id).first()
        if binding is None:
            raise NotFoundError("Domínio não encontrado.")

        hostname = binding.hostname(self.base_domain)
        self.ingress.remove_ingress(hostname)

        db.session.delete(binding)
        db.session.commit()
        logger.info(f"[Domínio] {hostname} removido")
