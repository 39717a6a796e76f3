"""
WalletSession - connection lifecycle for one signing-agent wallet.

States: disconnected -> connecting -> connected -> disconnected

connect() races probe -> access -> identity -> network check against a
fixed timeout. A connect or balance refresh that resolves after the session
was disconnected is discarded.
"""

import asyncio
import contextlib
import logging
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.clients.ledger_client import LedgerClient
from app.clients.signing_agent import SigningAgentBridge
from app.core.config import settings
from app.core.exceptions import (
    ConnectionAborted,
    ConnectTimeout,
    NotInstalled,
    WalletConnectionError,
    WrongNetwork,
)
from app.models.wallet import BalanceState, WalletIdentity

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class WalletSession:
    def __init__(
        self,
        bridge: SigningAgentBridge,
        ledger: LedgerClient,
        network_passphrase: Optional[str] = None,
        network_name: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        refresh_interval: Optional[float] = None,
    ):
        self.bridge = bridge
        self.ledger = ledger
        self.network_passphrase = network_passphrase or settings.NETWORK_PASSPHRASE
        self.network_name = network_name or settings.NETWORK_NAME
        self.connect_timeout = connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT_SECONDS
        self.refresh_interval = refresh_interval if refresh_interval is not None else settings.BALANCE_REFRESH_SECONDS

        self.state = SessionState.DISCONNECTED
        self.identity: Optional[WalletIdentity] = None
        self.balance = Decimal("0")
        self.balance_state = BalanceState.UNKNOWN
        self.last_error: Optional[str] = None

        self._generation = 0
        self._connect_lock = asyncio.Lock()
        self._poller: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self.state == SessionState.CONNECTED

    async def connect(self) -> WalletIdentity:
        """Connect, or return the identity of the already connected wallet."""
        async with self._connect_lock:
            if self.is_connected and self.identity:
                return self.identity

            self._generation += 1
            generation = self._generation
            self.state = SessionState.CONNECTING
            self.last_error = None

            try:
                identity = await asyncio.wait_for(self._handshake(), timeout=self.connect_timeout)
            except asyncio.TimeoutError:
                self._fail(generation, "Wallet connection timed out. Open the wallet and try again.")
                raise ConnectTimeout(self.last_error or "Wallet connection timed out")
            except WalletConnectionError as exc:
                self._fail(generation, str(exc))
                raise
            except Exception as exc:
                logger.exception("Unexpected error while connecting the wallet")
                self._fail(generation, f"Wallet connection failed: {exc}")
                raise WalletConnectionError(self.last_error or "Wallet connection failed") from exc

            if generation != self._generation:
                raise ConnectionAborted("Session was disconnected while connecting")

            self.identity = identity
            self.state = SessionState.CONNECTED
            logger.info("Wallet %s connected on %s", identity.public_key, identity.network)

            await self.refresh()
            if generation != self._generation:
                raise ConnectionAborted("Session was disconnected while connecting")
            self._start_polling()
            return identity

    async def _handshake(self) -> WalletIdentity:
        if not await self.bridge.probe_availability():
            raise NotInstalled("Unable to reach the wallet. Open it and try connecting again.")

        if not await self.bridge.is_allowed():
            await self.bridge.request_access()

        agent_identity = await self.bridge.get_identity()
        if agent_identity.network_passphrase != self.network_passphrase:
            raise WrongNetwork(f"Please switch the wallet to {self.network_name} and try again.")

        return WalletIdentity(public_key=agent_identity.address, network=self.network_name)

    def _fail(self, generation: int, message: str) -> None:
        if generation != self._generation:
            return
        self.state = SessionState.DISCONNECTED
        self.identity = None
        self.last_error = message
        logger.warning("Wallet connection failed: %s", message)

    async def refresh(self) -> Decimal:
        """Update the cached balance. Failures read as zero and keep the session."""
        if not self.is_connected or self.identity is None:
            return self.balance

        generation = self._generation
        reading = await self.ledger.read_balance(self.identity.public_key)
        if generation != self._generation or not self.is_connected:
            return self.balance

        self.balance_state = reading.state
        self.balance = reading.amount if reading.state == BalanceState.KNOWN else Decimal("0")
        return self.balance

    def _start_polling(self) -> None:
        if not self.refresh_interval or self.refresh_interval <= 0:
            return
        self._poller = asyncio.create_task(self._poll(self._generation))

    async def _poll(self, generation: int) -> None:
        while generation == self._generation and self.is_connected:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()

    async def disconnect(self) -> None:
        """Always succeeds. Clears identity and balance."""
        self._generation += 1
        was = self.identity.public_key if self.identity else None
        self.state = SessionState.DISCONNECTED
        self.identity = None
        self.balance = Decimal("0")
        self.balance_state = BalanceState.UNKNOWN
        self.last_error = None

        poller, self._poller = self._poller, None
        if poller is not None and not poller.done():
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller
        if was:
            logger.info("Wallet %s disconnected", was)
