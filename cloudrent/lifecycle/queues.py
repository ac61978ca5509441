import logging
import threading
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class QueueClosedError(RuntimeError):
    pass


class SerialQueue:
    """
    Fila FIFO com concorrência 1. Cada job roda em uma thread própria da fila,
    dentro de um app context do Flask (acesso a db.session).

    submit() retorna um Future: quem precisa do resultado (alocação) espera
    por ele; quem não precisa (pipeline) responde imediatamente.
    """

    def __init__(self, app, name):
        self.app = app
        self.name = name
        self._executor = None
        self._lock = threading.Lock()
        self._pending = 0

    @property
    def running(self):
        return self._executor is not None

    @property
    def pending(self):
        return self._pending

    def start(self):
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"queue-{self.name}")
                logger.info(f"[Fila] '{self.name}' iniciada")

    def submit(self, func, *args, **kwargs):
        with self._lock:
            if self._executor is None:
                raise QueueClosedError(f"Fila '{self.name}' não está ativa.")
            self._pending += 1
            return self._executor.submit(self._run, func, args, kwargs)

    def _run(self, func, args, kwargs):
        try:
            with self.app.app_context():
                return func(*args, **kwargs)
        finally:
            with self._lock:
                self._pending -= 1

    def shutdown(self, wait=True):
        """Fecha a fila; com wait=True drena os jobs já aceites."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
            logger.info(f"[Fila] '{self.name}' encerrada")
