"""
Abstract base class for long-running nostrcord services.

``BaseService[ConfigT]`` provides the standard lifecycle: structured logging
via [Logger][nostrcord.core.logger.Logger], graceful shutdown via
``asyncio.Event``, supervised restarts with
[run_forever()][nostrcord.core.base_service.BaseService.run_forever],
consecutive failure limits, and Prometheus metrics helpers backed by
[nostrcord.core.metrics][].

Unlike a batch job, a service's [run()][nostrcord.core.base_service.BaseService.run]
is expected to keep running until shutdown (the bridge holds two network
connections open). ``run_forever()`` only comes into play when ``run()``
returns or crashes, e.g. after the chat gateway drops its connection.

See Also:
    [BaseServiceConfig][nostrcord.core.base_service.BaseServiceConfig]: Base
        configuration model for all services.
    [Bridge][nostrcord.services.bridge.Bridge]: The concrete service.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from nostrcord.models.constants import ServiceName

from .logger import Logger
from .metrics import (
    RELAY_DURATION_SECONDS,
    SERVICE_COUNTER,
    SERVICE_GAUGE,
    SERVICE_INFO,
    MetricsConfig,
)
from .yaml import load_yaml


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class BaseServiceConfig(BaseModel):
    """Base configuration shared by all supervised services.

    Subclass this to add service-specific fields.
    """

    restart_delay: float = Field(
        default=10.0,
        ge=1.0,
        le=3600.0,
        description="Seconds to wait before restarting run() after it stops",
    )
    max_consecutive_failures: int = Field(
        default=5,
        ge=0,
        description="Stop after this many consecutive crashes (0 = unlimited)",
    )
    metrics: MetricsConfig = Field(
        default_factory=MetricsConfig,
        description="Prometheus metrics configuration",
    )


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Abstract base class for all nostrcord services.

    Subclasses must set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][nostrcord.core.base_service.BaseService.run].

    Attributes:
        SERVICE_NAME: Unique service identifier used in logging and metrics.
        CONFIG_CLASS: Pydantic model class used by the factory methods.
        _config: Typed service configuration.
        _logger: [Logger][nostrcord.core.logger.Logger] named after the service.
        _shutdown_event: ``asyncio.Event``; set means shutdown was requested.

    Note:
        The lifecycle is ``async with service:`` then
        [run_forever()][nostrcord.core.base_service.BaseService.run_forever].
        The context manager clears/sets the shutdown event on entry/exit.
    """

    SERVICE_NAME: ClassVar[ServiceName]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(self, config: ConfigT | None = None) -> None:
        self._config: ConfigT = (
            config if config is not None else cast("ConfigT", self.CONFIG_CLASS())
        )
        self._logger = Logger(self.SERVICE_NAME)
        self._shutdown_event = asyncio.Event()

    @property
    def config(self) -> ConfigT:
        """The typed service configuration (read-only)."""
        return self._config

    @abstractmethod
    async def run(self) -> None:
        """Run the service until shutdown is requested or a component stops.

        Implementations should return promptly once
        [is_running][nostrcord.core.base_service.BaseService.is_running]
        turns False.
        """
        ...

    def request_shutdown(self) -> None:
        """Request a graceful shutdown of the service.

        Safe to call from signal handlers: setting an ``asyncio.Event`` is
        atomic with respect to the event loop.
        """
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Whether the service is still active (shutdown not yet requested)."""
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float | None = None) -> bool:  # noqa: ASYNC109
        """Wait for a shutdown signal or a timeout.

        Returns ``True`` if shutdown was requested during the wait, ``False``
        if the timeout expired. ``timeout=None`` waits for shutdown only.
        """
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except TimeoutError:
            return False

    async def run_forever(self) -> bool:
        """Run the service, restarting it whenever ``run()`` stops.

        Exits when shutdown is requested or when
        ``config.max_consecutive_failures`` crashes happen in a row (``0``
        disables the limit). A clean return from ``run()`` resets the
        failure streak. ``CancelledError``, ``KeyboardInterrupt`` and
        ``SystemExit`` always propagate.

        Returns:
            ``False`` if the failure limit was reached, ``True`` otherwise.
        """
        restart_delay = self._config.restart_delay
        max_consecutive_failures = self._config.max_consecutive_failures

        if self._config.metrics.enabled:
            SERVICE_INFO.info({"service": self.SERVICE_NAME})

        self._logger.info(
            "run_forever_started",
            restart_delay=restart_delay,
            max_consecutive_failures=max_consecutive_failures,
        )

        consecutive_failures = 0
        gave_up = False

        while self.is_running:
            started = time.monotonic()
            try:
                await self.run()
                consecutive_failures = 0
                self.set_gauge("consecutive_failures", 0)
                self._logger.info(
                    "run_stopped", uptime_s=round(time.monotonic() - started, 1)
                )

            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                raise

            except Exception as e:  # Intentionally broad: top-level error boundary for run_forever
                consecutive_failures += 1
                self.inc_counter("runs_failed")
                self.set_gauge("consecutive_failures", consecutive_failures)
                self.inc_counter(f"errors_{type(e).__name__}")
                self._logger.error(
                    "run_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    consecutive_failures=consecutive_failures,
                )

                if (
                    max_consecutive_failures > 0
                    and consecutive_failures >= max_consecutive_failures
                ):
                    self._logger.critical(
                        "max_consecutive_failures_reached",
                        failures=consecutive_failures,
                        limit=max_consecutive_failures,
                    )
                    gave_up = True
                    break

            if not self.is_running:
                break
            self._logger.info("restart_scheduled", delay_s=restart_delay)
            if await self.wait(restart_delay):
                break

        self._logger.info("run_forever_stopped", gave_up=gave_up)
        return not gave_up

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, config_path: str, **kwargs: Any) -> Self:
        """Create a service from a YAML configuration file."""
        return cls.from_dict(load_yaml(config_path), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Create a service from a configuration dictionary.

        Parses ``data`` into the service's ``CONFIG_CLASS``.
        """
        config = cast("ConfigT", cls.CONFIG_CLASS(**data))
        return cls(config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        """Mark the service as running on context entry."""
        self._shutdown_event.clear()
        self._logger.info("service_started")
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        """Signal shutdown on context exit."""
        self._shutdown_event.set()
        self._logger.info("service_stopped")

    # -------------------------------------------------------------------------
    # Custom Metrics
    # -------------------------------------------------------------------------

    def set_gauge(self, name: str, value: float) -> None:
        """Set a named gauge metric for this service. No-op if metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_GAUGE.labels(service=self.SERVICE_NAME, name=name).set(value)

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment a named counter metric for this service. No-op if metrics are disabled."""
        if not self._config.metrics.enabled:
            return
        SERVICE_COUNTER.labels(service=self.SERVICE_NAME, name=name).inc(value)

    def observe_relay(self, direction: str, seconds: float) -> None:
        """Record how long relaying one message took in ``direction``."""
        if not self._config.metrics.enabled:
            return
        RELAY_DURATION_SECONDS.labels(service=self.SERVICE_NAME, direction=direction).observe(
            seconds
        )
