#########################################################################################
##
##                                  LOGGER MANAGER
##                                 (utils/logger.py)
##
##         Single point of control for the 'fdapfit' logger hierarchy. Modules
##         request child loggers, the application decides where they go.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import logging
import sys
from typing import TextIO


# CONSTANTS =============================================================================

ROOT_LOGGER_NAME = "fdapfit"

DEFAULT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"


# CLASS =================================================================================

class LoggerManager:
    """Singleton managing the ``fdapfit`` logger hierarchy.

    Library modules obtain their loggers through :meth:`get_logger` and never
    attach handlers themselves. By default the root logger only carries a
    ``NullHandler`` so that importing the library is silent; applications
    (e.g. the command line front end) call :meth:`configure` once.

    Example
    -------
    .. code-block:: python

        mgr = LoggerManager()
        mgr.configure(enabled=True, level=logging.INFO)

        logger = mgr.get_logger("opt.solver")
        logger.info("iteration done")
    """

    _instance: "LoggerManager | None" = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance


    def __init__(self):
        if self._initialized:
            return

        self.root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.root_logger.addHandler(logging.NullHandler())
        self._handler: logging.Handler | None = None
        self._initialized = True


    def configure(
        self,
        enabled: bool = True,
        output: str | TextIO | None = None,
        level: int = logging.INFO,
        format: str = DEFAULT_FORMAT,
        date_format: str = DEFAULT_DATE_FORMAT,
    ) -> None:
        """(Re)configure the output of the whole hierarchy.

        Parameters
        ----------
        enabled : bool
            If ``False`` any previously installed handler is removed and the
            hierarchy is silent again.
        output : str or file-like, optional
            File path (opened in append mode) or stream; ``sys.stderr`` if
            omitted.
        level : int
            Logging level of the root ``fdapfit`` logger.
        format : str
            Record format string.
        date_format : str
            ``asctime`` format string.
        """
        if self._handler is not None:
            self.root_logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

        if not enabled:
            self.root_logger.setLevel(logging.WARNING)
            return

        if isinstance(output, str):
            handler: logging.Handler = logging.FileHandler(output)
        else:
            handler = logging.StreamHandler(output if output is not None else sys.stderr)

        handler.setFormatter(logging.Formatter(format, datefmt=date_format))
        self.root_logger.addHandler(handler)
        self.root_logger.setLevel(level)
        self._handler = handler


    def get_logger(self, name: str) -> logging.Logger:
        """Return a child logger of the ``fdapfit`` root logger."""
        if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
            return logging.getLogger(name)
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


    def set_level(self, level: int) -> None:
        self.root_logger.setLevel(level)
