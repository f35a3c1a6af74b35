"""PortalEngine — central context owning clients, stores and services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from btc_portal.chain.bitcoind.client import BitcoindClient
from btc_portal.chain.fees.client import FeeEstimator
from btc_portal.datastore.client import Datastore
from btc_portal.metrics.collector import PortalMetrics
from btc_portal.portal.derivation import derive_deposit_address
from btc_portal.portal.history import HistoryReconciler
from btc_portal.portal.registry import DepositRegistry
from btc_portal.portal.service import PortalService
from btc_portal.portal.validator import RequestValidator

if TYPE_CHECKING:
    from btc_portal.config.settings import AppConfig

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class PortalEngine:
    """Central engine that owns all infrastructure and services.

    Built once per process and handed to whatever needs it (the FastAPI app
    keeps it on ``app.state.engine``). Nothing here is global.
    """

    def __init__(self, config: AppConfig, *, metrics: PortalMetrics | None = None) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            metrics: Metrics to record into; a private set is created if omitted.
        """
        self._config = config
        self._initialized = False

        # Infrastructure
        self._datastore: Datastore | None = None
        self._bitcoind: BitcoindClient | None = None
        self._fees: FeeEstimator | None = None
        self._metrics: PortalMetrics = metrics or PortalMetrics()

        # Portal components
        self._registry: DepositRegistry | None = None
        self._validator: RequestValidator | None = None
        self._history: HistoryReconciler | None = None
        self._service: PortalService | None = None

    async def initialize(self) -> None:
        """Open the datastore, create tables, connect clients, build services.

        Raises:
            RuntimeError: If already initialized.
            ValidationError: ``InvalidThreshold`` or ``InvalidKey`` if the
                configured master keys cannot form a multisig script.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        portal = self._config.portal
        key_set = portal.master_key_set()
        # Fail fast on an unusable key set before touching any resource.
        change = derive_deposit_address(key_set, "", portal.network)

        self._datastore = Datastore(self._config.db)
        await self._datastore.open(create_schema=True)

        self._bitcoind = BitcoindClient(self._config.bitcoind)
        await self._bitcoind.connect()
        self._fees = FeeEstimator(self._config.fee)
        await self._fees.connect()

        self._registry = DepositRegistry(self._datastore)
        self._validator = RequestValidator(key_set, portal.network, self._registry)
        self._history = HistoryReconciler(
            self._registry,
            self._bitcoind,
            min_conf=portal.min_conf,
            max_conf=portal.max_conf,
            fetch_timeout=portal.fetch_timeout,
            max_workers=portal.max_workers,
            metrics=self._metrics,
        )
        self._service = PortalService(self)

        self._initialized = True
        logger.info(
            "portal engine initialized: %d-of-%d multisig on %s, change address %s",
            key_set.threshold,
            len(key_set.keys),
            portal.network.value,
            change.address,
        )

    async def close(self) -> None:
        """Gracefully shut down all services and connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._service = None
        self._history = None
        self._validator = None
        self._registry = None

        if self._fees is not None:
            await self._fees.close()
            self._fees = None

        if self._bitcoind is not None:
            await self._bitcoind.close()
            self._bitcoind = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        self._initialized = False
        logger.info("portal engine shut down")

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def datastore(self) -> Datastore:
        """Get the datastore instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def bitcoind(self) -> BitcoindClient:
        """Get the Bitcoin Core RPC client."""
        if self._bitcoind is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._bitcoind

    @property
    def fees(self) -> FeeEstimator:
        """Get the fee oracle client."""
        if self._fees is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._fees

    @property
    def metrics(self) -> PortalMetrics:
        """Get the portal metrics."""
        return self._metrics

    @property
    def registry(self) -> DepositRegistry:
        """Get the deposit registry."""
        if self._registry is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._registry

    @property
    def validator(self) -> RequestValidator:
        """Get the request validator."""
        if self._validator is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._validator

    @property
    def history(self) -> HistoryReconciler:
        """Get the history reconciler."""
        if self._history is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._history

    @property
    def service(self) -> PortalService:
        """Get the portal service."""
        if self._service is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._service

    async def health_check(self) -> dict[str, str]:
        """Check health status of the database and the Bitcoin node.

        Returns:
            ``status`` is ``healthy`` only if both ``database`` and
            ``btcfullnode`` are ``connected``.
        """
        db_ok = self._datastore is not None and await self._datastore.ping()
        node_ok = self._bitcoind is not None and await self._bitcoind.ping()
        return {
            "status": "healthy" if (self._initialized and db_ok and node_ok) else "unhealthy",
            "database": "connected" if db_ok else "disconnected",
            "btcfullnode": "connected" if node_ok else "disconnected",
        }
