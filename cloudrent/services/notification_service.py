import logging
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Envio de e-mails transacionais (credenciais de instância, lembretes).
    O corpo é texto simples; o desenho dos templates HTML fica fora daqui.
    """

    def __init__(self, host, port=587, user=None, password=None, use_tls=True,
                 sender='noreply@cloudrent.local', dashboard_url='', timeout=30):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.dashboard_url = dashboard_url.rstrip('/')
        self.timeout = timeout

    def send_email(self, to, subject, body):
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)
        logger.info(f"[Email] '{subject}' enviado para {to}")

    def send_instance_credentials(self, to, username, instance_name, ip, password, admin_user):
        body = (
            f"Olá {username},\n\n"
            f"Sua instância \"{instance_name}\" está pronta.\n\n"
            f"  Endereço: {ip}\n"
            f"  Usuário: {admin_user}\n"
            f"  Senha inicial: {password}\n\n"
            "A senha precisa ser alterada no primeiro login.\n"
        )
        self.send_email(to, f"Sua instância \"{instance_name}\" está pronta!", body)

    def send_idle_reminder(self, to, username, instance_name, resource_id, uptime_seconds):
        hours = int(uptime_seconds // 3600)
        days = hours // 24
        body = (
            f"Olá {username},\n\n"
            f"Sua instância \"{instance_name}\" está ligada há mais de {days} dias ({hours} horas).\n"
            "Se não estiver usando, desligue-a para economizar pontos: uma instância parada não consome nada.\n\n"
            f"Gerenciar instância: {self.dashboard_url}/instance/{resource_id}\n"
        )
        self.send_email(to, f"Economize seus pontos - {instance_name}", body)
