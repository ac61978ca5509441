"""
Leitura e escrita de arquivos de configuração de cliente WireGuard.

O config armazenado em Resource.vpn_config é o arquivo completo retornado pela
API de VPN. Para remover o peer é preciso a chave pública do cliente, que é
derivada da PrivateKey da seção [Interface].
"""
import base64
import binascii
from dataclasses import dataclass, field

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat


class MalformedVpnConfigError(ValueError):
    """Config WireGuard ilegível ou sem os campos obrigatórios."""
    pass


@dataclass
class WireGuardConfig:
    interface: dict = field(default_factory=dict)
    peers: list = field(default_factory=list)

    @property
    def private_key(self):
        key = self.interface.get('PrivateKey')
        if not key:
            raise MalformedVpnConfigError("Seção [Interface] sem PrivateKey.")
        return key

    @property
    def address(self):
        return self.interface.get('Address')

    def public_key(self):
        """Chave pública (base64) correspondente à PrivateKey do cliente."""
        try:
            raw = base64.b64decode(self.private_key, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedVpnConfigError(f"PrivateKey não é base64 válido: {e}")
        if len(raw) != 32:
            raise MalformedVpnConfigError(f"PrivateKey com {len(raw)} bytes (esperado 32).")

        public = X25519PrivateKey.from_private_bytes(raw).public_key()
        return base64.b64encode(public.public_bytes(Encoding.Raw, PublicFormat.Raw)).decode()


def parse(text):
    if not text or not text.strip():
        raise MalformedVpnConfigError("Config WireGuard vazia.")

    config = WireGuardConfig()
    section = None

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split('#', 1)[0].strip()
        if not line:
            continue

        if line.startswith('[') and line.endswith(']'):
            name = line[1:-1].strip()
            if name == 'Interface':
                if config.interface:
                    raise MalformedVpnConfigError(f"Linha {lineno}: seção [Interface] repetida.")
                section = config.interface
            elif name == 'Peer':
                section = {}
                config.peers.append(section)
            else:
                raise MalformedVpnConfigError(f"Linha {lineno}: seção desconhecida [{name}].")
            continue

        if section is None:
            raise MalformedVpnConfigError(f"Linha {lineno}: chave fora de uma seção.")
        if '=' not in line:
            raise MalformedVpnConfigError(f"Linha {lineno}: esperado 'Chave = Valor'.")

        key, value = line.split('=', 1)
        section[key.strip()] = value.strip()

    if not config.interface:
        raise MalformedVpnConfigError("Config sem seção [Interface].")
    return config


def serialize(config):
    lines = ['[Interface]']
    lines += [f"{key} = {value}" for key, value in config.interface.items()]
    for peer in config.peers:
        lines += ['', '[Peer]']
        lines += [f"{key} = {value}" for key, value in peer.items()]
    return '\n'.join(lines) + '\n'
