from __future__ import annotations

from .logging_setup import get_logger

logger = get_logger(__name__)


class RefmatchError(Exception):
    pass


class ServiceNotReadyError(RefmatchError):
    """A component was used before initialize() or after teardown()."""


class Service:
    """
    initialize/teardown/is_ready capability shared by the components wired
    together in ServiceManager. Subclasses hook `_on_initialize` and
    `_on_teardown`.
    """
    service_name = "service"

    def __init__(self) -> None:
        self._ready = False

    def initialize(self) -> None:
        if self._ready:
            return
        logger.info(f"Initializing {self.service_name}")
        self._on_initialize()
        self._ready = True

    def teardown(self) -> None:
        logger.info(f"Tearing down {self.service_name}")
        try:
            self._on_teardown()
        finally:
            self._ready = False

    def is_ready(self) -> bool:
        return self._ready

    def require_ready(self) -> None:
        if not self._ready:
            raise ServiceNotReadyError(f"{self.service_name} is not initialized")

    def _on_initialize(self) -> None:
        pass

    def _on_teardown(self) -> None:
        pass
