"""Пример использования ArmSoft API клиента."""

import asyncio
import logging
from collections.abc import Mapping
from itertools import islice
from typing import Any

from armsoft import ArmSoftApiClientManager, get_armsoft_config

# Настраиваем логирование
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def print_preview(title: str, data: Any, limit: int = 5) -> None:
    """Вывести первые элементы ответа API.

    Ответ может быть списком, словарём или скаляром.
    """
    if isinstance(data, Mapping):
        items: list[Any] = [f"{key}: {value}" for key, value in islice(data.items(), limit)]
    elif isinstance(data, list):
        items = list(islice(data, limit))
    else:
        print(f"\n{title}: {data}")
        return

    print(f"\n{title} ({len(data)} шт.):")
    for item in items:
        print(f"  - {item}")


async def main() -> None:
    """Основная функция."""
    # Загружаем конфигурацию из config.yml
    config = get_armsoft_config()
    print(f"Подключение к серверу: {config.base_url}")

    # Создаём менеджер API (получает токен)
    manager = await ArmSoftApiClientManager.from_config(config)

    try:
        print_preview("Товары", await manager.fetch_goods())
        print_preview("Прайс-лист", await manager.fetch_default_prices())

    finally:
        # Закрываем соединение
        await manager.close()
        print("\nСоединение закрыто.")


if __name__ == "__main__":
    asyncio.run(main())
