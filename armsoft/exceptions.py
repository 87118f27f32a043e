"""Исключения для работы с ArmSoft API.

Два вида ошибок: ошибка аутентификации и ошибка запроса к данным.
Оба несут HTTP статус и reason phrase неуспешного ответа.
"""


class ArmSoftException(Exception):
    """Базовое исключение для ошибок ArmSoft API."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.original_error = original_error
        self.status_code = status_code
        self.reason = reason


class ArmSoftAuthException(ArmSoftException):
    """Исключение при ошибках аутентификации.

    Выбрасывается при:
    - Неуспешном ответе на POST /Login/ApiKey
    - Отсутствии accessToken в успешном ответе
    - Сетевой ошибке во время запроса токена
    """


class ArmSoftApiException(ArmSoftException):
    """Исключение при неуспешном запросе к данным или документам."""


class ArmSoftDecodeException(ArmSoftApiException):
    """Успешный ответ, тело которого не является JSON."""
