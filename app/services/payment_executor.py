import logging
from decimal import Decimal
from typing import Optional

from app.clients.ledger_client import LedgerClient
from app.clients.signing_agent import SigningAgentBridge
from app.core.config import settings
from app.core.exceptions import IdentityMismatch
from app.models.wallet import SettlementResult, WalletIdentity

logger = logging.getLogger(__name__)


class PaymentExecutor:
    """
    Pays one participant's share: build -> sign -> submit.

    Only the wallet of the participant who owes the share may pay it.
    Ledger and signing failures propagate unchanged; nothing is retried.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        bridge: SigningAgentBridge,
        network_passphrase: Optional[str] = None,
    ):
        self.ledger = ledger
        self.bridge = bridge
        self.network_passphrase = network_passphrase or settings.NETWORK_PASSPHRASE

    async def pay(
        self,
        payer: WalletIdentity,
        participant_address: str,
        destination_address: str,
        amount: Decimal,
    ) -> SettlementResult:
        if payer.public_key != participant_address:
            raise IdentityMismatch(
                f"Connect the participant wallet {participant_address} to pay this share"
            )

        async def signer(envelope_xdr: str) -> str:
            return await self.bridge.sign(
                envelope_xdr,
                network_passphrase=self.network_passphrase,
                signer_address=payer.public_key,
            )

        logger.info("Paying %s from %s to %s", amount, participant_address, destination_address)
        submission = await self.ledger.build_and_submit_payment(
            payer.public_key, destination_address, amount, signer
        )
        return SettlementResult(
            participant_address=participant_address,
            tx_hash=submission.hash,
            success=submission.success,
        )
