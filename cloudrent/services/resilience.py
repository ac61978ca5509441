"""
Circuit breaker para chamadas a serviços externos (Proxmox, Cloudflare, VPN, e-mail).

Cada breaker mede as chamadas numa janela deslizante. Quando existem pelo menos
``volume_threshold`` chamadas na janela e a porcentagem de falhas atinge
``error_threshold_percentage``, o circuito abre e as chamadas seguintes falham
imediatamente (CircuitOpenError). Passado ``reset_timeout`` o circuito fica
meio-aberto: uma chamada de teste passa; sucesso fecha, falha volta a abrir.

Uso:
    breaker = get_breaker('proxmox', 'clone_container')
    upid = breaker.call(proxmox.clone_container, 100, 123, 'host')

    # ou, para um cliente inteiro
    hypervisor = ProtectedClient(ProxmoxService(config), 'proxmox',
                                 passthrough=('wait_for_task',))
"""
import enum
import logging
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class CircuitState(enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Chamada rejeitada porque o circuito está aberto."""

    def __init__(self, name):
        super().__init__(f"Circuito '{name}' aberto: serviço indisponível.")
        self.name = name


class CallTimeoutError(Exception):
    """A chamada excedeu o timeout configurado para o serviço."""

    def __init__(self, name, timeout):
        super().__init__(f"Chamada '{name}' excedeu {timeout}s.")
        self.name = name
        self.timeout = timeout


@dataclass
class BreakerConfig:
    timeout: float | None = 10.0          # segundos; None = sem timeout
    error_threshold_percentage: int = 50
    reset_timeout: float = 30.0
    volume_threshold: int = 5
    rolling_window: float = 10.0          # janela de estatísticas (segundos)


# Afinação por serviço: o Proxmox é lento e crítico, o e-mail é tolerante
SERVICE_CONFIGS = {
    'proxmox': BreakerConfig(timeout=15.0, error_threshold_percentage=60, reset_timeout=60.0, volume_threshold=3),
    'cloudflare': BreakerConfig(timeout=10.0, error_threshold_percentage=50, reset_timeout=30.0, volume_threshold=5),
    'vpn': BreakerConfig(timeout=20.0, error_threshold_percentage=50, reset_timeout=45.0, volume_threshold=3),
    'email': BreakerConfig(timeout=30.0, error_threshold_percentage=70, reset_timeout=60.0, volume_threshold=5),
}

DEFAULT_CONFIG = BreakerConfig()


@dataclass
class BreakerStats:
    successes: int = 0
    failures: int = 0
    timeouts: int = 0
    rejects: int = 0
    last_failure: str | None = None
    opened_at: float | None = None
    window: deque = field(default_factory=deque)


class CircuitBreaker:

    def __init__(self, name, config=None, clock=time.monotonic):
        self.name = name
        self.config = config or DEFAULT_CONFIG
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._trial_in_flight = False
        self._lock = threading.Lock()
        self._stats = BreakerStats()
        self._executor = None

    @property
    def state(self):
        with self._lock:
            self._refresh_state()
            return self._state

    @property
    def stats(self):
        return self._stats

    def _refresh_state(self):
        if self._state == CircuitState.OPEN and self._stats.opened_at is not None:
            if self._clock() - self._stats.opened_at >= self.config.reset_timeout:
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info(f"[CircuitBreaker] {self.name} meio-aberto - testando serviço")

    def _prune_window(self, now):
        window = self._stats.window
        while window and now - window[0][0] > self.config.rolling_window:
            window.popleft()

    def _acquire(self):
        with self._lock:
            self._refresh_state()
            if self._state == CircuitState.OPEN:
                self._stats.rejects += 1
                logger.warning(f"[CircuitBreaker] {self.name} rejeitado - circuito aberto")
                raise CircuitOpenError(self.name)
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    self._stats.rejects += 1
                    raise CircuitOpenError(self.name)
                self._trial_in_flight = True

    def _open(self):
        self._state = CircuitState.OPEN
        self._stats.opened_at = self._clock()
        self._trial_in_flight = False
        logger.warning(f"[CircuitBreaker] {self.name} aberto - serviço indisponível")

    def _record(self, ok, error=None):
        with self._lock:
            now = self._clock()
            if ok:
                self._stats.successes += 1
            else:
                self._stats.failures += 1
                self._stats.last_failure = str(error)

            if self._state == CircuitState.HALF_OPEN:
                if ok:
                    self._state = CircuitState.CLOSED
                    self._stats.window.clear()
                    self._trial_in_flight = False
                    logger.info(f"[CircuitBreaker] {self.name} fechado - serviço recuperado")
                else:
                    self._open()
                return

            self._stats.window.append((now, ok))
            self._prune_window(now)

            if not ok:
                total = len(self._stats.window)
                failed = sum(1 for _, success in self._stats.window if not success)
                if total >= self.config.volume_threshold and \
                        failed * 100 >= self.config.error_threshold_percentage * total:
                    self._open()

    def _get_executor(self):
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix=f"breaker-{self.name}")
            return self._executor

    def _run_with_timeout(self, func, args, kwargs):
        if not self.config.timeout:
            return func(*args, **kwargs)

        future = self._get_executor().submit(func, *args, **kwargs)
        try:
            return future.result(timeout=self.config.timeout)
        except FutureTimeoutError:
            # A thread continua rodando; apenas deixamos de esperar por ela
            with self._lock:
                self._stats.timeouts += 1
            logger.warning(f"[CircuitBreaker] {self.name} timeout")
            raise CallTimeoutError(self.name, self.config.timeout)

    def call(self, func, *args, **kwargs):
        self._acquire()
        try:
            result = self._run_with_timeout(func, args, kwargs)
        except Exception as e:
            self._record(False, e)
            raise
        self._record(True)
        return result

    def reset(self):
        with self._lock:
            self._state = CircuitState.CLOSED
            self._trial_in_flight = False
            self._stats = BreakerStats()

    def snapshot(self):
        state = self.state
        return {
            'state': state.value,
            'successes': self._stats.successes,
            'failures': self._stats.failures,
            'timeouts': self._stats.timeouts,
            'rejects': self._stats.rejects,
            'last_failure': self._stats.last_failure,
        }


# Registro de breakers por "serviço:operação"
_breakers = {}
_registry_lock = threading.Lock()


def get_breaker(service, name):
    key = f"{service}:{name}"
    with _registry_lock:
        breaker = _breakers.get(key)
        if breaker is None:
            breaker = CircuitBreaker(key, SERVICE_CONFIGS.get(service, DEFAULT_CONFIG))
            _breakers[key] = breaker
        return breaker


def get_stats():
    """Estado de todos os breakers (para o health check)."""
    with _registry_lock:
        items = list(_breakers.items())
    return {key: breaker.snapshot() for key, breaker in items}


def reset_all():
    with _registry_lock:
        items = list(_breakers.values())
    for breaker in items:
        breaker.reset()


class ProtectedClient:
    """
    Proxy que encaminha cada método público do cliente pelo breaker
    "serviço:método". Nomes em ``passthrough`` são chamados diretamente
    (ex: wait_for_task, que faz polling longo por natureza).
    """

    def __init__(self, target, service, passthrough=()):
        self._target = target
        self._service = service
        self._passthrough = set(passthrough)

    @property
    def target(self):
        return self._target

    def __getattr__(self, name):
        attr = getattr(self._target, name)
        if name.startswith('_') or name in self._passthrough or not callable(attr):
            return attr

        breaker = get_breaker(self._service, name)

        def guarded(*args, **kwargs):
            return breaker.call(attr, *args, **kwargs)

        guarded.__name__ = name
        return guarded
