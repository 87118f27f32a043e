"""Конфигурация для ArmSoft API клиента.

Читает настройки из YAML-файла, путь к которому указывается
в переменной окружения ARMSOFT_CONFIG.

Переменные окружения автоматически загружаются из .env файла.
"""

from functools import lru_cache
from os import getenv
from pathlib import Path
from typing import Any, TypeVar, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr
from yaml import CSafeLoader as SafeLoader
from yaml import load

# Автоматически загружаем переменные из .env файла
load_dotenv()

ConfigType = TypeVar("ConfigType", bound=BaseModel)

CONFIG_ENV_VAR = "ARMSOFT_CONFIG"
CONFIG_ROOT_KEY = "armsoft"

DEFAULT_BASE_URL = "https://dbservices.armsoft.am/mobiletrade/api"
DEFAULT_LANGUAGE = "hy-AM,hy;q=0.5"
DEFAULT_TOKEN_TTL_MINUTES = 60
DEFAULT_TIMEOUT = 30.0


def default_settings() -> dict[str, Any]:
    """Настройки, передаваемые в каждом запросе данных по умолчанию."""
    return {"ShowProgress": False, "ShowColumns": False}


class ArmSoftConfig(BaseModel):
    """Конфигурация для подключения к ArmSoft API."""

    # Идентификатор клиента (GUID)
    client_id: str

    # Секрет клиента
    secret: SecretStr

    # Идентификатор базы данных
    db_id: str

    # Тип цены для запросов прайс-листа (01 - опт, 02 - розница, 03 - закупка)
    price_type: str | None = "02"

    # Язык ответов API
    language: str = DEFAULT_LANGUAGE

    # Дополнительные настройки, передаются в API как есть
    settings: dict[str, Any] = Field(default_factory=default_settings)

    base_url: str = DEFAULT_BASE_URL

    # Таймаут HTTP запросов в секундах
    timeout: float = DEFAULT_TIMEOUT

    # Время жизни токена на стороне API
    token_ttl_minutes: int = Field(default=DEFAULT_TOKEN_TTL_MINUTES, gt=0)


def config_path() -> Path:
    """Путь к YAML-файлу конфигурации из переменной ARMSOFT_CONFIG.

    Raises:
        ValueError: Если переменная окружения не задана
        FileNotFoundError: Если файла по указанному пути нет
    """
    raw_path = getenv(CONFIG_ENV_VAR)
    if not raw_path:
        raise ValueError(
            f"Переменная окружения {CONFIG_ENV_VAR} не задана. "
            "Укажите путь к файлу конфигурации ArmSoft."
        )
    path = Path(raw_path).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Файл конфигурации ArmSoft не найден: {path}")
    return path


@lru_cache
def parse_config_file() -> dict[str, Any]:
    """Прочитать YAML-файл конфигурации целиком.

    Raises:
        ValueError: Если файл пуст или верхний уровень не словарь
    """
    path = config_path()
    with path.open("rb") as file:
        config_data = load(file, Loader=SafeLoader)

    if config_data is None:
        raise ValueError(f"Файл конфигурации {path} пуст")
    if not isinstance(config_data, dict):
        raise ValueError(f"Конфигурация в {path} должна быть словарём")
    return config_data


@lru_cache
def get_config(model: type[ConfigType], root_key: str) -> ConfigType:  # noqa: UP047
    """Провалидировать секцию root_key файла конфигурации моделью model."""
    sections = parse_config_file()
    if root_key not in sections:
        available = ", ".join(sorted(map(str, sections))) or "нет"
        raise ValueError(
            f"Секция '{root_key}' не найдена в конфигурации (есть: {available})"
        )
    return model.model_validate(sections[root_key])


def get_armsoft_config() -> ArmSoftConfig:
    """Конфигурация ArmSoft из секции 'armsoft'."""
    return cast(ArmSoftConfig, get_config(ArmSoftConfig, CONFIG_ROOT_KEY))
