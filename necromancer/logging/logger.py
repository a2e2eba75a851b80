import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar


class Log:
    """Centralized logging with structured format.

    Lines are prefixed with the run id bound in the current context (thread or
    task) so they can be matched to a saved mapping artifact. Messages carry
    counts, run ids and paths only, never raw identifiers.
    """

    _logger: logging.Logger = logging.getLogger("necromancer")
    _run_id: ContextVar[str] = ContextVar("necromancer_run_id", default="")

    @classmethod
    def configure(cls, log_level: str) -> None:
        """Configure the logger with the specified level and stdout handler."""
        cls._logger.setLevel(log_level.upper())
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
            )
            cls._logger.addHandler(handler)

    @classmethod
    @contextmanager
    def run_scope(cls, run_id: str) -> Iterator[None]:
        """Prefix messages logged in this context with *run_id* until exit."""
        token = cls._run_id.set(run_id)
        try:
            yield
        finally:
            cls._run_id.reset(token)

    @classmethod
    def _format(cls, message: str) -> str:
        run_id = cls._run_id.get()
        if not run_id:
            return message
        return f"[run {run_id}] {message}"

    @classmethod
    def info(cls, message: str, **kwargs: object) -> None:
        """Log an info message."""
        cls._logger.info(cls._format(message), extra=kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: object) -> None:
        """Log an error message."""
        cls._logger.error(cls._format(message), extra=kwargs)

    @classmethod
    def warning(cls, message: str, **kwargs: object) -> None:
        cls._logger.warning(cls._format(message), extra=kwargs)

    @classmethod
    def debug(cls, message: str, **kwargs: object) -> None:
        cls._logger.debug(cls._format(message), extra=kwargs)
