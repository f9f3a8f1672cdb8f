"""
Exceções de domínio do serviço.

Os serviços levantam estas exceções; os endpoints traduzem cada uma para o
status HTTP correspondente (ver app.main).
"""


class PaddockError(Exception):
    """Base de todas as exceções da aplicação."""

    http_status = 500

    def to_detail(self) -> dict:
        return {"error": str(self)}


class NotFoundError(PaddockError):
    http_status = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ConflictError(PaddockError):
    """
    Operação rejeitada por conflito de estado. `code` é a razão legível por
    máquina (ex.: STAKE_LIMIT_EXCEEDED, RACE_LOCKED) e `extra` carrega os
    números que o chamador precisa para decidir se tenta de novo.
    """

    http_status = 409

    def __init__(self, code: str, message: str = "", **extra):
        self.code = code
        self.message = message or code
        self.extra = extra
        super().__init__(f"{code}: {self.message}")

    def to_detail(self) -> dict:
        detail = {"error": self.code, "message": self.message}
        detail.update(self.extra)
        return detail


class PermissionDeniedError(PaddockError):
    http_status = 403

    def __init__(self, message: str = "Permission denied"):
        self.message = message
        super().__init__(message)


class ProviderError(PaddockError):
    """Falha de rede ou resposta não-2xx de um provedor externo."""

    http_status = 502

    def __init__(self, provider: str, status_code: int, url: str, detail: str | None = None):
        self.provider = provider
        self.status_code = status_code
        self.url = url
        self.detail = detail
        message = f"[{provider}] HTTP {status_code} from {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ProviderConfigError(PaddockError):
    """Provedor mal configurado (chave ausente, provedor não suportado)."""

    http_status = 400

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")
