import logging

import requests

logger = logging.getLogger(__name__)

CATCH_ALL_SERVICE = 'http_status:404'


class IngressConfigError(Exception):
    pass


class CloudflareIngressService:
    """
    Gestão das regras de ingress de um Cloudflare Tunnel.
    Cada alteração lê a configuração atual e grava-a inteira de volta (PUT);
    a regra catch-all 'http_status:404' fica sempre em último lugar.
    """

    def __init__(self, api_url, account_id, api_token, tunnel_id, session=None, timeout=10):
        self.api_url = api_url.rstrip('/')
        self.account_id = account_id
        self.tunnel_id = tunnel_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {api_token}",
            'Content-Type': 'application/json'
        })
        self._configured = bool(account_id and api_token and tunnel_id)

    @property
    def _config_url(self):
        return f"{self.api_url}/accounts/{self.account_id}/cfd_tunnel/{self.tunnel_id}/configurations"

    def _ensure_configured(self):
        if not self._configured:
            raise IngressConfigError("Credenciais Cloudflare ausentes (CF_ACCOUNT_ID, CF_API_TOKEN, CF_TUNNEL_ID).")

    def _get_config(self):
        response = self.session.get(self._config_url, timeout=self.timeout)
        response.raise_for_status()
        result = response.json().get('result') or {}
        return result.get('config') or {}

    def _put_config(self, config):
        response = self.session.put(self._config_url, json={'config': config}, timeout=self.timeout)
        response.raise_for_status()

    def add_ingress(self, hostname, service_url):
        self._ensure_configured()
        config = self._get_config()
        ingress = list(config.get('ingress') or [])

        rule = {'hostname': hostname, 'service': service_url}
        catch_all = next((i for i, r in enumerate(ingress) if r.get('service') == CATCH_ALL_SERVICE), None)
        if catch_all is not None:
            ingress.insert(catch_all, rule)
        else:
            ingress.append(rule)
            ingress.append({'service': CATCH_ALL_SERVICE})

        self._put_config({**config, 'ingress': ingress})
        logger.info(f"[Cloudflare] Ingress adicionado: {hostname} -> {service_url}")
        return True

    def remove_ingress(self, hostname):
        return self.remove_multiple_ingress([hostname]) > 0

    def remove_multiple_ingress(self, hostnames):
        """Remove todas as regras dos hostnames dados em uma única escrita. Retorna quantas saíram."""
        self._ensure_configured()
        targets = set(hostnames)
        if not targets:
            return 0

        config = self._get_config()
        ingress = list(config.get('ingress') or [])
        kept = [r for r in ingress if r.get('hostname') not in targets]
        removed = len(ingress) - len(kept)

        if removed == 0:
            logger.info(f"[Cloudflare] Nenhuma regra encontrada para {len(targets)} hostname(s)")
            return 0

        self._put_config({**config, 'ingress': kept})
        logger.info(f"[Cloudflare] {removed} regra(s) de ingress removida(s)")
        return removed
