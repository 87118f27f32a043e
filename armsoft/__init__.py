"""Модуль для работы с ArmSoft Mobile Trade API.

Предоставляет клиента с кэшированием bearer-токена
и обновлением токена перед запросом.

Пример использования:
    from armsoft import get_armsoft_config, ArmSoftApiClientManager

    config = get_armsoft_config()
    manager = await ArmSoftApiClientManager.from_config(config)

    # Справочники и остатки
    goods = await manager.fetch_goods()
    rems = await manager.fetch_goods_remainders(mt_code="0001")

    # Документы
    bill = await manager.fetch_bill("c3b5...")
"""

from armsoft.api_client_manager import (
    ApiCredentials,
    ArmSoftApiClientManager,
)
from armsoft.config_reader import (
    ArmSoftConfig,
    get_armsoft_config,
    get_config,
    parse_config_file,
)
from armsoft.exceptions import (
    ArmSoftApiException,
    ArmSoftAuthException,
    ArmSoftDecodeException,
    ArmSoftException,
)
from armsoft.token_manager import (
    Authenticator,
    InMemoryTokenStore,
    Token,
    TokenCache,
    TokenManager,
    TokenStore,
)

__all__ = [
    # API Client Manager
    "ApiCredentials",
    "ArmSoftApiClientManager",
    # Configuration
    "ArmSoftConfig",
    "get_armsoft_config",
    "get_config",
    "parse_config_file",
    # Exceptions
    "ArmSoftApiException",
    "ArmSoftAuthException",
    "ArmSoftDecodeException",
    "ArmSoftException",
    # Token Management
    "Authenticator",
    "InMemoryTokenStore",
    "Token",
    "TokenCache",
    "TokenManager",
    "TokenStore",
]
