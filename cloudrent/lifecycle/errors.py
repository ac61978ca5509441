class LifecycleError(Exception):
    """Erro de negócio retornado ao cliente HTTP com o status_code indicado."""
    status_code = 400


class AllocationError(LifecycleError):
    """Pedido de alocação inválido (conta inexistente, banida, ...)."""


class DomainError(LifecycleError):
    """Subdomínio inválido, indisponível ou acima do limite gratuito."""


class NotFoundError(LifecycleError):
    status_code = 404


class InvalidStateError(LifecycleError):
    """Operação incompatível com o estado atual da instância."""
    status_code = 409
