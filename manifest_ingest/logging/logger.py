import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"


class Log:
    """Process-wide logging facade.

    Batch jobs run on their own threads, so every line carries the thread name
    (``batch-<job id prefix>`` for background work, ``MainThread`` otherwise).
    """

    _logger: logging.Logger = logging.getLogger("manifest_ingest")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Set the level and attach a single stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            cls._logger.addHandler(handler)

    @classmethod
    def info(cls, message: str, **kwargs: object) -> None:
        cls._logger.info(message, extra=kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: object) -> None:
        cls._logger.error(message, extra=kwargs)

    @classmethod
    def warning(cls, message: str, **kwargs: object) -> None:
        cls._logger.warning(message, extra=kwargs)

    @classmethod
    def debug(cls, message: str, **kwargs: object) -> None:
        cls._logger.debug(message, extra=kwargs)

    @classmethod
    def exception(cls, message: str, **kwargs: object) -> None:
        """Log at error level with the active exception's traceback."""
        cls._logger.exception(message, extra=kwargs)
