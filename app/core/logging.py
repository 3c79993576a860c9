import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Настройка корневого логгера приложения"""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # SQLAlchemy пишет SQL сам, если включен db_echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
