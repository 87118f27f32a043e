"""Менеджер токенов для ArmSoft API.

Управляет получением, кэшированием и обновлением bearer-токена.
Токен обновляется до запроса, если в кэше нет действующего токена.
Повторный запрос при 401 не выполняется.
"""

import asyncio
import logging
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Protocol

import httpx

from armsoft.config_reader import DEFAULT_TIMEOUT
from armsoft.exceptions import ArmSoftAuthException

if TYPE_CHECKING:
    from armsoft.api_client_manager import ApiCredentials

logger = logging.getLogger(__name__)
logger.setLevel(level=logging.DEBUG)

AUTH_PATH = "/Login/ApiKey"
DEFAULT_TOKEN_TTL = timedelta(minutes=60)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Token:
    """Bearer-токен и момент его истечения.

    Attributes:
        value: Строка токена
        expires_at: Момент, начиная с которого токен недействителен
    """

    value: str
    expires_at: datetime


class TokenStore(Protocol):
    """Хранилище одного токена. Время жизни задаёт вызывающая сторона."""

    def get(self) -> Token | None: ...

    def put(self, token: Token) -> None: ...


class InMemoryTokenStore:
    """Хранилище токена в памяти процесса."""

    def __init__(self) -> None:
        self._token: Token | None = None

    def get(self) -> Token | None:
        return self._token

    def put(self, token: Token) -> None:
        self._token = token


class TokenCache:
    """Кэш токена поверх внешнего хранилища.

    Определяет правило действительности токена и операцию замены.
    Lock привязан к хранилищу: кэши над одним хранилищем обновляют
    токен по очереди.
    """

    _store_locks: "weakref.WeakKeyDictionary[TokenStore, asyncio.Lock]" = (
        weakref.WeakKeyDictionary()
    )

    def __init__(self, store: TokenStore | None = None, clock: Clock = utc_now) -> None:
        self._store: TokenStore = store if store is not None else InMemoryTokenStore()
        self._clock = clock
        self.lock = self._lock_for(self._store)

    @classmethod
    def _lock_for(cls, store: TokenStore) -> asyncio.Lock:
        """Получить или создать lock для данного хранилища."""
        try:
            lock = cls._store_locks.get(store)
            if lock is None:
                lock = cls._store_locks[store] = asyncio.Lock()
            return lock
        except TypeError:
            # Хранилище без weakref/hash: lock только для этого кэша
            logger.debug("Хранилище %r не поддерживает weakref", type(store).__name__)
            return asyncio.Lock()

    def now(self) -> datetime:
        return self._clock()

    def get(self) -> Token | None:
        """Последний сохранённый токен или None."""
        return self._store.get()

    def is_valid(self, token: Token | None) -> bool:
        """Токен есть, не пустой и ещё не истёк (строгое сравнение)."""
        return token is not None and bool(token.value) and self._clock() < token.expires_at

    def put(self, token: Token) -> None:
        """Заменить сохранённый токен целиком."""
        self._store.put(token)


class Authenticator:
    """Получение нового токена через POST /Login/ApiKey."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        token_ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Clock = utc_now,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._http_client = http_client
        self._url = base_url.rstrip("/") + AUTH_PATH
        self._token_ttl = token_ttl
        self._clock = clock
        self._timeout = timeout

    async def authenticate(self, credentials: "ApiCredentials") -> Token:
        """Запросить новый токен.

        Args:
            credentials: Учетные данные клиента

        Returns:
            Новый токен; сохранять его в кэш должна вызывающая сторона

        Raises:
            ArmSoftAuthException: При неуспешном ответе или сетевой ошибке
        """
        body = {
            "ClientId": credentials.client_id,
            "Secret": credentials.secret,
            "DBId": credentials.db_id,
        }
        logger.debug("Запрос токена для key_id=%s", credentials.key_id)
        try:
            response = await self._http_client.post(
                self._url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error(
                "Ошибка при получении токена для key_id=%s: %s",
                credentials.key_id,
                exc,
            )
            raise ArmSoftAuthException(
                f"ArmSoft API authentication error: {exc}", original_error=exc
            ) from exc

        if not response.is_success:
            logger.error(
                "Ошибка аутентификации для key_id=%s: %s/%d",
                credentials.key_id,
                response.reason_phrase,
                response.status_code,
            )
            raise ArmSoftAuthException(
                "ArmSoft API authentication error: "
                f"{response.reason_phrase}/{response.status_code}",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ArmSoftAuthException(
                "ArmSoft API authentication error: ответ не является JSON",
                original_error=exc,
                status_code=response.status_code,
                reason=response.reason_phrase,
            ) from exc

        access_token = data.get("accessToken") if isinstance(data, dict) else None
        if not access_token:
            raise ArmSoftAuthException(
                "ArmSoft API authentication error: accessToken отсутствует в ответе",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )

        # Время истечения отсчитывается от момента получения ответа
        return Token(value=access_token, expires_at=self._clock() + self._token_ttl)


class TokenManager:
    """Менеджер токена для конкретных учетных данных.

    Если действующего токена нет, запрашивает новый под lock кэша.
    Конкурентные корутины ждут на lock и получают уже обновлённый токен.
    """

    def __init__(
        self,
        credentials: "ApiCredentials",
        cache: TokenCache,
        authenticator: Authenticator,
    ) -> None:
        self._credentials = credentials
        self._cache = cache
        self._authenticator = authenticator
        self._token_version: int = 0

    @property
    def cache(self) -> TokenCache:
        return self._cache

    async def ensure_token(self) -> str:
        """Вернуть действующий токен, при необходимости получив новый.

        Raises:
            ArmSoftAuthException: При ошибке получения токена
        """
        token = self._cache.get()
        if token is not None and self._cache.is_valid(token):
            return token.value

        async with self._cache.lock:
            # Double-check после получения lock
            token = self._cache.get()
            if token is not None and self._cache.is_valid(token):
                logger.debug(
                    "Токен уже обновлён другой корутиной для key_id=%s",
                    self._credentials.key_id,
                )
                return token.value

            token = await self._authenticator.authenticate(self._credentials)
            self._cache.put(token)
            self._token_version += 1
            logger.info(
                "Токен получен успешно для key_id=%s (версия: %d)",
                self._credentials.key_id,
                self._token_version,
            )
            return token.value

    def invalidate(self) -> None:
        """Сбросить токен, следующий ensure_token запросит новый."""
        self._cache.put(Token(value="", expires_at=self._cache.now()))
        logger.debug("Токен сброшен для key_id=%s", self._credentials.key_id)
