"""
AdminConfig — конфигурация сервисов администрирования.

Frozen dataclass, передается в сервисы явно (как GateConfig у гейтов).
AdminConfig.from_env() читает переменные окружения INVOICEGATE_*.
"""

import os
from dataclasses import dataclass, fields
from typing import Optional


_ENV_PREFIX = "INVOICEGATE_"


@dataclass(frozen=True)
class AdminConfig:
    """Параметры invoicegate.

    - default_page_limit / max_page_limit: пагинация списков
    - pbkdf2_iterations: стоимость хеширования паролей
    - token_ttl_seconds: время жизни токена (1 день)
    - allow_open_registration: разрешена ли регистрация SUPERADMIN при наличии других SUPERADMIN
    - database_url: URL для SqlAlchemyStore
    """

    default_page_limit: int = 10
    max_page_limit: int = 100
    pbkdf2_iterations: int = 240_000
    token_ttl_seconds: int = 86_400
    allow_open_registration: bool = True
    database_url: str = "sqlite+pysqlite:///:memory:"

    def __post_init__(self):
        if self.default_page_limit < 1 or self.max_page_limit < self.default_page_limit:
            raise ValueError(
                f"invalid page limits: default={self.default_page_limit}, max={self.max_page_limit}"
            )
        if self.pbkdf2_iterations < 1:
            raise ValueError(f"pbkdf2_iterations must be positive, got {self.pbkdf2_iterations}")
        if self.token_ttl_seconds < 1:
            raise ValueError(f"token_ttl_seconds must be positive, got {self.token_ttl_seconds}")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "AdminConfig":
        """Сборка конфигурации из окружения.

        Имя переменной = INVOICEGATE_ + имя поля в верхнем регистре,
        например INVOICEGATE_MAX_PAGE_LIMIT=50. Отсутствующие поля берут default.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type in (bool, "bool"):
                values[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.type in (int, "int"):
                values[f.name] = int(raw)
            else:
                values[f.name] = raw
        return cls(**values)
