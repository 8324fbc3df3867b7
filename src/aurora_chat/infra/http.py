"""Transporte HTTP para o backend Aurora/Pivota.

Este módulo fornece o cliente usado pelo LivePort, com:
- Headers de identidade (X-Brief-ID, X-Trace-ID, X-Aurora-UID)
- Timeout configurável (única defesa contra backend lento)
- Logging estruturado (sem payloads, sem PII)

Não há retry automático: cada chamada faz exatamente uma tentativa.
Retry é sempre uma ação do usuário (ex.: reenviar foto).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from aurora_chat.observability.logging import get_logger, short_id

if TYPE_CHECKING:
    from aurora_chat.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

MAX_ERROR_BODY_CHARS = 2000
_HINT_STATUSES: frozenset[int] = frozenset({0, 404})


@dataclass(slots=True, frozen=True)
class RequestIdentity:
    """Identificadores enviados em toda chamada ao backend."""

    brief_id: str
    trace_id: str
    aurora_uid: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "X-Brief-ID": self.brief_id,
            "X-Trace-ID": self.trace_id,
        }
        if self.aurora_uid:
            headers["X-Aurora-UID"] = self.aurora_uid
        return headers


class TransportError(Exception):
    """Falha de transporte ou resposta HTTP não-2xx.

    status_code 0 significa erro de rede ou backend não configurado.
    """

    def __init__(self, message: str, status_code: int = 0, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def hint(self) -> str | None:
        """Dica para erros típicos de configuração de URL base."""
        if self.status_code in _HINT_STATUSES:
            return (
                "Check API_BASE_URL: it must point to the backend root "
                "(the /v1 suffix is added)"
            )
        return None


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:MAX_ERROR_BODY_CHARS]


class BackendTransport:
    """Cliente JSON assíncrono do backend (uma tentativa por chamada).

    Uso típico:
        async with BackendTransport(base_url) as transport:
            body = await transport.request_json(identity, "/analysis")
    """

    def __init__(
        self,
        base_url: str | None,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/") or None
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def base_url(self) -> str | None:
        return self._base_url

    @property
    def is_configured(self) -> bool:
        return self._base_url is not None

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_seconds))
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> BackendTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def request_json(
        self,
        identity: RequestIdentity,
        path: str,
        method: str = "POST",
        *,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: Any = None,
        base_url: str | None = None,
    ) -> Any:
        """Envia a requisição e retorna o corpo JSON (ou None se vazio).

        Raises:
            TransportError: rede, timeout, não-2xx ou JSON inválido
        """
        root = (base_url or "").rstrip("/") or self._base_url
        if not root:
            raise TransportError("Backend base URL is not configured", status_code=0)

        url = f"{root}/{path.lstrip('/')}"
        log_extra = {
            "method": method,
            "path": path,
            "brief_id": short_id(identity.brief_id),
        }
        client = await self._get_client()

        try:
            response = await client.request(
                method,
                url,
                headers=identity.headers(),
                json=json,
                data=data,
                files=files,
            )
        except httpx.TimeoutException as exc:
            logger.warning("backend_request_timeout", extra=log_extra)
            raise TransportError("Request timed out", status_code=0) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "backend_request_failed",
                extra={**log_extra, "error_type": type(exc).__name__},
            )
            raise TransportError(f"Network error: {type(exc).__name__}", status_code=0) from exc

        if response.is_error:
            logger.warning(
                "backend_http_error",
                extra={**log_extra, "status_code": response.status_code},
            )
            raise TransportError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                body=_error_body(response),
            )

        if not response.content:
            return None

        try:
            body = response.json()
        except ValueError as exc:
            logger.warning(
                "backend_invalid_json",
                extra={**log_extra, "status_code": response.status_code},
            )
            raise TransportError(
                "Invalid JSON response",
                status_code=response.status_code,
                body=response.text[:MAX_ERROR_BODY_CHARS],
            ) from exc

        logger.debug(
            "backend_request_ok",
            extra={**log_extra, "status_code": response.status_code},
        )
        return body


def create_transport(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> BackendTransport:
    """Cria o transporte a partir das configurações (URL base já com /v1)."""
    return BackendTransport(
        base_url=settings.api_endpoint,
        timeout_seconds=settings.request_timeout_seconds,
        client=client,
    )
