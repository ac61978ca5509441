import logging
from urllib.parse import quote

import requests

from cloudrent.services import wireguard

logger = logging.getLogger(__name__)


class VpnService:
    """
    Cliente da API interna de gestão do WireGuard.
    POST /client {targetIp} -> {clientIp, publicKey, config}
    DELETE /client/<publicKey>
    """

    def __init__(self, base_url, session=None, timeout=20):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def create_client(self, target_ip):
        logger.info(f"[VPN] Criando cliente para o IP alvo: {target_ip}")
        response = self.session.post(f"{self.base_url}/client", json={'targetIp': target_ip}, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()

        # Valida e normaliza o config antes de o persistir
        config = wireguard.parse(data.get('config', ''))
        data['config'] = wireguard.serialize(config)
        return data

    def delete_client(self, config_text):
        """
        Remove o peer associado a um config armazenado.
        Lança MalformedVpnConfigError se o config não tiver PrivateKey válida.
        """
        if not config_text:
            return False

        public_key = wireguard.parse(config_text).public_key()
        logger.info(f"[VPN] Removendo cliente com chave: {public_key[:8]}...")
        response = self.session.delete(
            f"{self.base_url}/client/{quote(public_key, safe='')}",
            timeout=self.timeout
        )
        response.raise_for_status()
        return True
