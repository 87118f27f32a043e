"""Фасад ArmSoft API.

Один HTTP вызов на операцию, bearer-токен проверяется перед каждым запросом.
Создание экземпляра не выполняет сетевых запросов: токен запрашивается
фабрикой connect() / from_config() или при входе в async with.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import TracebackType
from typing import Any

import httpx

from armsoft.config_reader import (
    DEFAULT_BASE_URL,
    DEFAULT_LANGUAGE,
    DEFAULT_TIMEOUT,
    ArmSoftConfig,
    default_settings,
)
from armsoft.exceptions import (
    ArmSoftApiException,
    ArmSoftAuthException,
    ArmSoftDecodeException,
)
from armsoft.token_manager import (
    DEFAULT_TOKEN_TTL,
    Authenticator,
    TokenCache,
    TokenManager,
    TokenStore,
)

logger = logging.getLogger(__name__)
logger.setLevel(level=logging.DEBUG)

GOODS_PATH = "/Data/Goods"
GOODS_REMS_PATH = "/Data/GoodsRems"
PRICE_LIST_PATH = "/Data/PriceList"
MTBILL_PATH = "/Documents/MTBill"
DOCUMENTS_JOURNAL_PATH = "/DocumentsJournal"

DateLike = date | str


def format_date(value: DateLike | None) -> str | None:
    """Привести дату к формату YYYY-MM-DD. Строка передаётся как есть."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def today() -> str:
    """Текущая локальная дата в формате YYYY-MM-DD."""
    return date.today().isoformat()


@dataclass(frozen=True)
class ApiCredentials:
    """Учетные данные для ArmSoft.

    Attributes:
        client_id: Идентификатор клиента
        secret: Секрет клиента
        db_id: Идентификатор базы данных
    """

    client_id: str
    secret: str = field(repr=False)
    db_id: str

    @property
    def key_id(self) -> str:
        """Идентификатор для логов."""
        return f"{self.db_id}:{self.client_id}"


class ArmSoftApiClientManager:
    """Фасад для работы с ArmSoft Mobile Trade API.

    Содержит: httpx.AsyncClient, TokenManager.
    Предоставляет методы для работы с API.

    Использование:
        manager = await ArmSoftApiClientManager.connect(credentials)
        goods = await manager.fetch_goods("2024-01-01")
        await manager.close()
    """

    def __init__(
        self,
        credentials: ApiCredentials,
        *,
        base_url: str = DEFAULT_BASE_URL,
        language: str = DEFAULT_LANGUAGE,
        settings: dict[str, Any] | None = None,
        price_type: str | None = None,
        token_cache: TokenCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Инициализация менеджера без сетевых запросов.

        Args:
            credentials: Учетные данные API
            base_url: Базовый URL API
            language: Значение заголовка Accept-Language
            settings: Настройки, передаваемые в каждом запросе данных
            price_type: Тип цены для fetch_default_prices
            token_cache: Кэш токена, можно разделять между менеджерами
            timeout: Таймаут каждого HTTP запроса в секундах
            token_ttl: Время жизни полученного токена
            http_client: Внешний HTTP клиент (не закрывается менеджером)
        """
        self._credentials = credentials
        self._base_url = base_url.rstrip("/")
        self._language = language
        self._settings = settings if settings is not None else default_settings()
        self._price_type = price_type
        self._timeout = timeout

        self._owns_http_client = http_client is None
        self._http_client = (
            http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        )

        self._token_cache = token_cache if token_cache is not None else TokenCache()
        authenticator = Authenticator(
            http_client=self._http_client,
            base_url=self._base_url,
            token_ttl=token_ttl,
            clock=self._token_cache.now,
            timeout=timeout,
        )
        self._token_manager = TokenManager(
            credentials=credentials,
            cache=self._token_cache,
            authenticator=authenticator,
        )
        logger.debug(
            "Создан экземпляр ArmSoftApiClientManager для key_id=%s",
            credentials.key_id,
        )

    @classmethod
    async def connect(
        cls, credentials: ApiCredentials, **options: Any
    ) -> "ArmSoftApiClientManager":
        """Создать менеджер и убедиться, что токен действителен.

        Args:
            credentials: Учетные данные API
            **options: Параметры конструктора

        Returns:
            Менеджер с действующим токеном

        Raises:
            ArmSoftAuthException: Если получить токен не удалось
        """
        manager = cls(credentials, **options)
        try:
            await manager.open()
        except BaseException:
            # Включая CancelledError
            await manager.close()
            raise
        return manager

    @classmethod
    async def from_config(
        cls,
        config: ArmSoftConfig,
        token_store: TokenStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        token_cache: TokenCache | None = None,
    ) -> "ArmSoftApiClientManager":
        """Создать менеджер из конфигурации ArmSoft.

        Args:
            config: Конфигурация ArmSoft из YAML-файла
            token_store: Хранилище токена (по умолчанию в памяти)
            token_cache: Готовый кэш токена, важнее token_store
            http_client: Внешний HTTP клиент

        Returns:
            Менеджер с действующим токеном
        """
        credentials = ApiCredentials(
            client_id=config.client_id,
            secret=config.secret.get_secret_value(),
            db_id=config.db_id,
        )
        return await cls.connect(
            credentials,
            base_url=config.base_url,
            language=config.language,
            settings=dict(config.settings),
            price_type=config.price_type,
            token_cache=token_cache if token_cache is not None else TokenCache(token_store),
            timeout=config.timeout,
            token_ttl=timedelta(minutes=config.token_ttl_minutes),
            http_client=http_client,
        )

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    async def open(self) -> None:
        """Получить токен, если в кэше нет действующего."""
        await self._token_manager.ensure_token()

    async def close(self) -> None:
        """Закрыть HTTP клиент, если он создан менеджером."""
        if self._owns_http_client:
            await self._http_client.aclose()
        logger.debug("Закрыт менеджер для key_id=%s", self._credentials.key_id)

    async def __aenter__(self) -> "ArmSoftApiClientManager":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ========== Общий контракт запроса ==========

    def _build_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept-Language": self._language,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Выполнить запрос с действующим токеном и разобрать ответ.

        Raises:
            ArmSoftAuthException: Если не удалось обновить токен
            ArmSoftApiException: При неуспешном ответе или сетевой ошибке
            ArmSoftDecodeException: Если успешный ответ не является JSON
        """
        token = await self._token_manager.ensure_token()

        logger.debug("Запрос %s %s", method, path)
        try:
            response = await self._http_client.request(
                method,
                self._base_url + path,
                json=json,
                params=params,
                headers=self._build_headers(token),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("Ошибка API %s %s: %s", method, path, exc)
            raise ArmSoftApiException(
                f"ArmSoft API error: {exc}", original_error=exc
            ) from exc

        return self._decode_response(method, path, response)

    def _decode_response(self, method: str, path: str, response: httpx.Response) -> Any:
        if not response.is_success:
            logger.error(
                "Ошибка API %s %s: %s/%d",
                method,
                path,
                response.reason_phrase,
                response.status_code,
            )
            raise ArmSoftApiException(
                f"ArmSoft API error: {response.reason_phrase}/{response.status_code}",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as exc:
            logger.error("Ответ %s %s не является JSON", method, path)
            raise ArmSoftDecodeException(
                f"ArmSoft API error: ответ {path} не является JSON",
                original_error=exc,
                status_code=response.status_code,
                reason=response.reason_phrase,
            ) from exc

    async def _post_data(self, path: str, parameters: dict[str, Any]) -> Any:
        """POST с телом {settings, parameters}."""
        return await self._request(
            "POST",
            path,
            json={"settings": self._settings, "parameters": parameters},
        )

    # ========== Справочники и остатки ==========

    async def fetch_goods(self, rem_date: DateLike | None = None) -> Any:
        """Получить список товаров.

        Args:
            rem_date: Дата остатков (по умолчанию сегодня)

        Returns:
            Декодированный JSON ответа
        """
        return await self._post_data(
            GOODS_PATH,
            {"RemDate": format_date(rem_date) or today()},
        )

    async def fetch_goods_remainders(
        self,
        rem_date: DateLike | None = None,
        mt_code: str | None = None,
    ) -> Any:
        """Получить остатки товаров, или одного товара если указан mt_code.

        Args:
            rem_date: Дата остатков (по умолчанию сегодня)
            mt_code: Код товара MTCode
        """
        return await self._post_data(
            GOODS_REMS_PATH,
            {
                "RemDate": format_date(rem_date) or today(),
                "MTCode": mt_code,
            },
        )

    async def fetch_prices(
        self,
        price_date: DateLike | None = None,
        mt_code: str | None = None,
        price_types: str | None = None,
    ) -> Any:
        """Получить прайс-лист.

        Args:
            price_date: Дата прайс-листа (по умолчанию сегодня)
            mt_code: Код товара MTCode
            price_types: Типы цен (01 - опт, 02 - розница, 03 - закупка)
        """
        return await self._post_data(
            PRICE_LIST_PATH,
            {
                "Date": format_date(price_date) or today(),
                "MTCode": mt_code,
                "PriceTypes": price_types,
            },
        )

    async def fetch_default_prices(
        self,
        price_date: DateLike | None = None,
        mt_code: str | None = None,
    ) -> Any:
        """Получить прайс-лист по типу цены из конфигурации."""
        return await self.fetch_prices(
            price_date=price_date,
            mt_code=mt_code,
            price_types=self._price_type,
        )

    # ========== Документы ==========

    async def fetch_documents_journal(
        self,
        date_begin: DateLike | None = None,
        date_end: DateLike | None = None,
    ) -> Any:
        """Получить журнал документов за период.

        Незаданные границы периода передаются как null.
        """
        return await self._post_data(
            DOCUMENTS_JOURNAL_PATH,
            {
                "DateBegin": format_date(date_begin),
                "DateEnd": format_date(date_end),
            },
        )

    async def fetch_bill(self, guid: str) -> Any:
        """Получить документ MTBill по guid."""
        if not guid:
            raise ValueError("guid документа обязателен")
        return await self._request("GET", MTBILL_PATH, params={"guid": guid})

    async def submit_bill(self, payload: Any) -> Any:
        """Отправить документ MTBill.

        Тело запроса: payload как есть, без обёртки {settings, parameters}.
        """
        return await self._request("POST", MTBILL_PATH, json=payload)
