"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou arquivo .env em dev).
A ausência de API_BASE_URL significa "sem backend": sessões rodam em demo.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# -----------------------------------------------------------------------------
# Constantes do backend Aurora/Pivota
# -----------------------------------------------------------------------------
API_VERSION_PREFIX: str = "/v1"
SHOP_INVOKE_PATH: str = "/agent/shop/v1/invoke"
VALID_MODES: frozenset[str] = frozenset({"demo", "live"})


class Settings(BaseSettings):
    """Configurações lidas do ambiente.

    Comentários em PT-BR são obrigatórios por diretriz do projeto.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    # Aplicação
    service_name: str = "aurora_chat"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"

    # Backend (modo live)
    api_base_url: str | None = None  # Sem valor = apenas demo
    shop_gateway_url: str | None = None  # Gateway de ofertas afiliadas (opcional)
    default_mode: str = "demo"  # demo | live (modo de novas sessões)
    request_timeout_seconds: float = 30.0  # Timeout HTTP (não há retry automático)

    # Demo
    demo_seed: int | None = None  # Semente do RNG de demo (None = não determinístico)

    # Sessão e memória local
    session_ttl_seconds: int = 7200  # TTL do store em memória
    snapshot_max_messages: int = 120  # Mensagens preservadas no snapshot
    event_log_max_events: int = 100  # Eventos de fluxo retidos em memória

    @property
    def is_backend_configured(self) -> bool:
        """True quando há uma URL de backend utilizável."""
        return bool((self.api_base_url or "").strip())

    @property
    def api_endpoint(self) -> str | None:
        """URL base normalizada do backend, sempre terminando em /v1."""
        raw = (self.api_base_url or "").strip().rstrip("/")
        if not raw:
            return None
        if raw.endswith(API_VERSION_PREFIX):
            return raw
        return f"{raw}{API_VERSION_PREFIX}"

    @property
    def shop_gateway_endpoint(self) -> str | None:
        """URL do gateway de shop sem barra final."""
        raw = (self.shop_gateway_url or "").strip().rstrip("/")
        return raw or None

    @property
    def is_production(self) -> bool:
        """Verifica se está em ambiente de produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Verifica se está em ambiente de staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Verifica se está em ambiente de desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")

    def validate_mode_config(self) -> list[str]:
        """Valida modo padrão das sessões.

        Modo live exige backend configurado; em produção, demo é proibido
        como padrão (evita servir recomendações fictícias a usuários reais).
        Retorna lista de erros (vazia = OK).
        """
        errors: list[str] = []
        mode = self.default_mode.lower()

        if mode not in VALID_MODES:
            errors.append(f"DEFAULT_MODE '{mode}' inválido. Valores válidos: demo | live")

        if mode == "live" and not self.is_backend_configured:
            errors.append("DEFAULT_MODE=live requer API_BASE_URL configurado")

        if self.is_production and mode == "demo":
            errors.append("DEFAULT_MODE=demo é proibido em produção")

        return errors

    def validate_backend_urls(self) -> list[str]:
        """Valida formato das URLs de backend."""
        errors: list[str] = []
        for name, value in (
            ("API_BASE_URL", self.api_base_url),
            ("SHOP_GATEWAY_URL", self.shop_gateway_url),
        ):
            if not value:
                continue
            if not value.startswith(("http://", "https://")):
                errors.append(f"{name} deve começar com http:// ou https://")
            elif (self.is_staging or self.is_production) and value.startswith("http://"):
                errors.append(f"{name} deve usar https em staging/production")
        return errors

    def validate_limits(self) -> list[str]:
        """Valida limites numéricos (timeouts, tamanhos de buffer)."""
        errors: list[str] = []
        if self.request_timeout_seconds <= 0:
            errors.append("REQUEST_TIMEOUT_SECONDS deve ser > 0")
        if self.snapshot_max_messages < 1:
            errors.append("SNAPSHOT_MAX_MESSAGES deve ser >= 1")
        if self.event_log_max_events < 1:
            errors.append("EVENT_LOG_MAX_EVENTS deve ser >= 1")
        if self.session_ttl_seconds < 60:
            errors.append("SESSION_TTL_SECONDS deve ser >= 60")
        return errors


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings.

    A cache garante que mesmo múltiplas injeções não criam novos objetos.
    """
    return Settings()
