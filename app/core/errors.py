from typing import Any, Dict, Optional


class OfferStoreError(Exception):
    """Базовая ошибка хранилища предложений"""

    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(OfferStoreError):
    """Некорректные входные данные"""

    code = "validation_error"


class UnauthorizedError(OfferStoreError):
    """Отсутствующий или неверный токен"""

    code = "unauthorized"

    def __init__(self, message: str = "Authorization token required"):
        super().__init__(message)


class NotFoundError(OfferStoreError):
    """Ресурс не найден или не принадлежит пользователю"""

    code = "not_found"


class OfferNotFoundError(NotFoundError):
    # Одно сообщение для "нет такого" и "не ваше"
    def __init__(self, offer_id: Optional[str] = None):
        super().__init__("Offer not found")
        self.offer_id = offer_id


class VersionNotFoundError(NotFoundError):
    def __init__(self, offer_id: str, version_number: int):
        super().__init__("Version not found")
        self.offer_id = offer_id
        self.version_number = version_number


class PreconditionRequiredError(OfferStoreError):
    """Для изменения требуется заголовок If-Match"""

    code = "precondition_failed"

    def __init__(self, message: str = "If-Match header is required for updates"):
        super().__init__(message)


class ConflictError(OfferStoreError):
    """Предложение было изменено после того, как клиент его прочитал"""

    code = "conflict"

    def __init__(
        self,
        message: str = "Offer was modified by another user",
        current: Optional[Any] = None,
    ):
        super().__init__(message)
        # Текущее состояние предложения (если известно) для деталей конфликта
        self.current = current

    def details(self) -> Dict[str, Any]:
        if self.current is None:
            return {"yourVersion": "outdated"}
        return {
            "currentETag": self.current.etag,
            "currentVersion": self.current.current_version,
            "lastModifiedAt": self.current.updated_at.isoformat() if self.current.updated_at else None,
            "lastModifiedBy": self.current.last_modified_by,
            "yourVersion": "outdated",
        }


class DuplicateVersionError(ConflictError):
    """Версия с таким номером уже существует"""

    code = "version_exists"

    def __init__(self, offer_id: str, version_number: int):
        super().__init__(f"Version {version_number} already exists")
        self.offer_id = offer_id
        self.version_number = version_number
