import logging
import time
from contextlib import suppress

import paramiko

logger = logging.getLogger(__name__)


class RemoteCommandError(Exception):
    """Comando remoto terminou com código diferente de zero."""

    def __init__(self, command, exit_code, stderr):
        super().__init__(f"Comando falhou com código {exit_code}: {stderr.strip()}")
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class RemoteShell:
    """
    Execução pontual de comandos por SSH (bootstrap dos containers).
    A conexão é tentada até ``connect_attempts`` vezes; o sshd de um CT
    recém-iniciado (ou reiniciado) pode ainda não aceitar conexões.
    """

    def __init__(self, connect_attempts=3, retry_delay=2.0, timeout=10, sleep=time.sleep):
        self.connect_attempts = connect_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep

    def _connect(self, host, username, password):
        last_error = None
        for attempt in range(1, self.connect_attempts + 1):
            client = paramiko.SSHClient()
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            try:
                client.connect(
                    hostname=host,
                    port=22,
                    username=username,
                    password=password,
                    timeout=self.timeout,
                    banner_timeout=self.timeout,
                    auth_timeout=self.timeout,
                    look_for_keys=False,
                    allow_agent=False,
                )
                return client
            except (paramiko.SSHException, OSError) as e:
                last_error = e
                client.close()
                logger.debug(f"[SSH] Tentativa {attempt}/{self.connect_attempts} para {host} falhou: {e}")
                if attempt < self.connect_attempts:
                    self._sleep(self.retry_delay)
        raise last_error

    def exec_command(self, host, command, username='root', password=None):
        """Executa ``command`` e retorna o stdout (sem espaços nas pontas)."""
        client = self._connect(host, username, password)
        try:
            _, stdout, stderr = client.exec_command(command, timeout=self.timeout * 6)
            exit_code = stdout.channel.recv_exit_status()
            out = stdout.read().decode(errors='replace')
            err = stderr.read().decode(errors='replace')
        finally:
            with suppress(Exception):
                client.close()

        if exit_code != 0:
            raise RemoteCommandError(command, exit_code, err)
        return out.strip()
