"""
LedgerClient - reads balances from and submits payments to Horizon.

Payment flow:
1. Load the sender account (current sequence number)
2. Build one native payment operation with the fixed memo and a
   bounded validity window
3. Hand the unsigned XDR to the signer capability
4. Check the signed envelope is the transaction that was built
5. Submit the signed XDR and return the transaction hash

Rejections are raised as LedgerError and never retried here.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Optional

import httpx
from stellar_sdk import Account, Asset, TransactionBuilder, TransactionEnvelope
from stellar_sdk.exceptions import SdkError

from app.core.config import settings
from app.core.exceptions import AccountNotFound, LedgerError, SigningRejected
from app.models.wallet import BalanceReading, BalanceState, PaymentSubmission
from app.utils.split_calculator import format_amount

logger = logging.getLogger(__name__)

NATIVE_ASSET_TYPE = "native"

# Takes an unsigned envelope XDR, returns the signed envelope XDR.
Signer = Callable[[str], Awaitable[str]]


class LedgerClient:
    """Thin async wrapper over the Horizon REST API."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        horizon_url: Optional[str] = None,
        network_passphrase: Optional[str] = None,
        base_fee: Optional[int] = None,
        tx_timeout: Optional[int] = None,
        memo: Optional[str] = None,
    ):
        self.http = http
        self.horizon_url = (horizon_url or settings.HORIZON_URL).rstrip("/")
        self.network_passphrase = network_passphrase or settings.NETWORK_PASSPHRASE
        self.base_fee = base_fee or settings.BASE_FEE
        self.tx_timeout = tx_timeout or settings.TX_TIMEOUT_SECONDS
        self.memo = memo if memo is not None else settings.PAYMENT_MEMO

    async def load_account(self, address: str) -> dict:
        """Fetch the raw account record. Raises AccountNotFound on 404."""
        try:
            response = await self.http.get(f"{self.horizon_url}/accounts/{address}")
        except httpx.HTTPError as exc:
            raise LedgerError(f"Ledger service unreachable: {exc}")

        if response.status_code == 404:
            raise AccountNotFound(f"Account {address} not found")
        if response.status_code >= 400:
            raise LedgerError(f"Account lookup failed with status {response.status_code}")
        try:
            account = response.json()
        except ValueError:
            raise LedgerError(f"Account lookup for {address} returned a non-JSON body")
        if not isinstance(account, dict):
            raise LedgerError(f"Account lookup for {address} returned an unexpected body")
        return account

    async def read_balance(self, address: str) -> BalanceReading:
        """Native balance as a tri-state reading. Never raises."""
        try:
            account = await self.load_account(address)
        except AccountNotFound as exc:
            return BalanceReading(state=BalanceState.UNKNOWN, reason=str(exc))
        except LedgerError as exc:
            logger.warning("Balance query for %s failed: %s", address, exc)
            return BalanceReading(state=BalanceState.ERROR, reason=str(exc))

        balances = account.get("balances")
        if not isinstance(balances, list):
            balances = []
        for balance in balances:
            if not isinstance(balance, dict) or balance.get("asset_type") != NATIVE_ASSET_TYPE:
                continue
            try:
                return BalanceReading(state=BalanceState.KNOWN, amount=Decimal(balance["balance"]))
            except (KeyError, InvalidOperation) as exc:
                logger.warning("Unreadable native balance for %s: %r", address, exc)
                return BalanceReading(state=BalanceState.ERROR, reason="unreadable balance")
        return BalanceReading(state=BalanceState.UNKNOWN, reason="no native balance")

    async def load_balance(self, address: str) -> Decimal:
        """Native balance, or zero when it cannot be determined."""
        reading = await self.read_balance(address)
        if reading.state != BalanceState.KNOWN:
            return Decimal("0")
        return reading.amount

    async def build_payment(self, sender_address: str, destination_address: str, amount: Decimal) -> TransactionEnvelope:
        account = await self.load_account(sender_address)
        try:
            source = Account(sender_address, int(account["sequence"]))
        except (KeyError, ValueError) as exc:
            raise LedgerError(f"Account {sender_address} has no usable sequence: {exc!r}")

        try:
            builder = (
                TransactionBuilder(
                    source_account=source,
                    network_passphrase=self.network_passphrase,
                    base_fee=self.base_fee,
                )
                .append_payment_op(
                    destination=destination_address,
                    asset=Asset.native(),
                    amount=format_amount(amount),
                )
                .set_timeout(self.tx_timeout)
            )
            if self.memo:
                builder.add_text_memo(self.memo)
            return builder.build()
        except (SdkError, ValueError) as exc:
            raise LedgerError(f"Could not build payment: {exc}")

    async def submit(self, signed_xdr: str) -> PaymentSubmission:
        try:
            TransactionEnvelope.from_xdr(signed_xdr, self.network_passphrase)
        except Exception as exc:
            raise LedgerError(f"Signed envelope is not valid XDR: {exc!r}")

        try:
            response = await self.http.post(
                f"{self.horizon_url}/transactions",
                data={"tx": signed_xdr},
            )
        except httpx.HTTPError as exc:
            raise LedgerError(f"Ledger service unreachable: {exc}")

        body = _json_or_empty(response)
        if response.status_code >= 400:
            result_codes = body.get("extras", {}).get("result_codes", {})
            reason = _rejection_reason(body, result_codes, response.status_code)
            logger.warning("Transaction rejected: %s", reason)
            raise LedgerError(reason, result_codes)

        tx_hash = body.get("hash")
        if not tx_hash:
            raise LedgerError("Ledger accepted the transaction but returned no hash")
        return PaymentSubmission(hash=tx_hash, success=bool(body.get("successful", True)))

    async def build_and_submit_payment(
        self,
        sender_address: str,
        destination_address: str,
        amount: Decimal,
        signer: Signer,
    ) -> PaymentSubmission:
        envelope = await self.build_payment(sender_address, destination_address, amount)
        signed_xdr = await signer(envelope.to_xdr())
        self._ensure_same_transaction(envelope, signed_xdr)
        submission = await self.submit(signed_xdr)
        logger.info(
            "Payment of %s from %s to %s submitted: %s",
            format_amount(amount), sender_address, destination_address, submission.hash,
        )
        return submission

    def _ensure_same_transaction(self, built: TransactionEnvelope, signed_xdr: str) -> None:
        """The signer may only add signatures, never change the transaction."""
        try:
            signed = TransactionEnvelope.from_xdr(signed_xdr, self.network_passphrase)
        except Exception as exc:
            raise SigningRejected(f"Signed transaction is not valid XDR: {exc!r}")
        if signed.hash() != built.hash():
            logger.warning("Signer returned a different transaction than the one built")
            raise SigningRejected("Signed transaction does not match the payment that was built")


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _rejection_reason(body: dict, result_codes: dict, status_code: int) -> str:
    """Human-readable reason, e.g. 'tx_failed: op_underfunded'."""
    tx_code = result_codes.get("transaction")
    op_codes = [code for code in result_codes.get("operations") or [] if code != "op_success"]
    if tx_code:
        return f"{tx_code}: {', '.join(op_codes)}" if op_codes else tx_code
    return body.get("title") or body.get("detail") or f"Submission failed with status {status_code}"
