"""Configurações centralizadas do aurora_chat.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- Constantes de caminho do backend (API_VERSION_PREFIX, SHOP_INVOKE_PATH)

Uso típico:
    from aurora_chat.config import get_settings
"""

from aurora_chat.config.settings import (
    API_VERSION_PREFIX,
    SHOP_INVOKE_PATH,
    VALID_MODES,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "API_VERSION_PREFIX",
    "SHOP_INVOKE_PATH",
    "VALID_MODES",
]
