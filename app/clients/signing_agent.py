"""
Bridge to the external, user-controlled signing agent (Freighter-style wallet).

The agent answers every protocol call with either a success payload or a
payload carrying an `error` field. Any non-empty `error` is a failure,
whatever the transport status. Calls are single-shot and have no
cancellation of their own; callers that need a deadline race them.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel
from stellar_sdk import Keypair, TransactionEnvelope
from stellar_sdk.exceptions import BadSignatureError

from app.core.config import settings
from app.core.exceptions import AccessDenied, IdentityUnavailable, SigningRejected

logger = logging.getLogger(__name__)

NOT_INSTALLED_MARKERS = ("not installed", "extension")


class SigningAgentTransport(Protocol):
    """Raw protocol calls. Each returns the agent's JSON payload."""

    async def is_connected(self) -> Dict[str, Any]: ...

    async def is_allowed(self) -> Dict[str, Any]: ...

    async def request_access(self) -> Dict[str, Any]: ...

    async def get_address(self) -> Dict[str, Any]: ...

    async def get_network(self) -> Dict[str, Any]: ...

    async def sign_transaction(self, xdr: str, network_passphrase: str, address: str) -> Dict[str, Any]: ...


class HttpSigningAgentTransport:
    """Speaks the agent protocol as JSON POSTs to `<base_url>/<method>`."""

    def __init__(self, http: httpx.AsyncClient, base_url: Optional[str] = None):
        self.http = http
        self.base_url = (base_url or settings.SIGNING_AGENT_URL).rstrip("/")

    async def _call(self, method: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        response = await self.http.post(f"{self.base_url}/{method}", json=payload or {})
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400 and not body.get("error"):
            body["error"] = f"Signing agent answered {response.status_code}"
        return body

    async def is_connected(self) -> Dict[str, Any]:
        return await self._call("isConnected")

    async def is_allowed(self) -> Dict[str, Any]:
        return await self._call("isAllowed")

    async def request_access(self) -> Dict[str, Any]:
        return await self._call("requestAccess")

    async def get_address(self) -> Dict[str, Any]:
        return await self._call("getAddress")

    async def get_network(self) -> Dict[str, Any]:
        return await self._call("getNetwork")

    async def sign_transaction(self, xdr: str, network_passphrase: str, address: str) -> Dict[str, Any]:
        return await self._call(
            "signTransaction",
            {"xdr": xdr, "networkPassphrase": network_passphrase, "address": address},
        )


class AgentState(str, Enum):
    UNKNOWN = "unknown"
    PROBING = "probing"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class AgentIdentity(BaseModel):
    address: str
    network_passphrase: str


def _error_text(payload: Dict[str, Any]) -> str:
    """Normalise the `error` field (string or {message}) to text, '' if none."""
    error = payload.get("error")
    if not error:
        return ""
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


class SigningAgentBridge:
    def __init__(self, transport: SigningAgentTransport):
        self.transport = transport
        self.state = AgentState.UNKNOWN

    async def probe_availability(self) -> bool:
        """
        Is the agent process reachable?

        Independent of authorization: an agent that answers but has not
        granted access yet is still available.
        """
        self.state = AgentState.PROBING
        available = None
        try:
            available = await self._probe()
        finally:
            if available is None:
                # Probe was cancelled or failed before answering.
                self.state = AgentState.UNKNOWN
        self.state = AgentState.AVAILABLE if available else AgentState.UNAVAILABLE
        logger.debug("Signing agent probe: %s", self.state.value)
        return available

    async def _probe(self) -> bool:
        try:
            connected = await self.transport.is_connected()
            if not _error_text(connected):
                return True
            allowed = await self.transport.is_allowed()
            if not _error_text(allowed):
                return True
        except httpx.HTTPError as exc:
            logger.info("Signing agent unreachable: %s", exc)
            return False

        combined = f"{_error_text(connected)} {_error_text(allowed)}".lower()
        return not any(marker in combined for marker in NOT_INSTALLED_MARKERS)

    async def is_allowed(self) -> bool:
        try:
            result = await self.transport.is_allowed()
        except httpx.HTTPError as exc:
            raise AccessDenied(f"Signing agent error: {exc}")
        error = _error_text(result)
        if error:
            raise AccessDenied(error)
        return bool(result.get("isAllowed"))

    async def request_access(self) -> None:
        try:
            result = await self.transport.request_access()
        except httpx.HTTPError as exc:
            raise AccessDenied(f"Signing agent error: {exc}")
        error = _error_text(result)
        if error:
            raise AccessDenied(error)

    async def get_identity(self) -> AgentIdentity:
        try:
            address_result = await self.transport.get_address()
            network_result = await self.transport.get_network()
        except httpx.HTTPError as exc:
            raise IdentityUnavailable(f"Signing agent error: {exc}")

        error = _error_text(address_result)
        address = address_result.get("address")
        if error or not address:
            raise IdentityUnavailable(
                error or "Wallet address not available. Unlock the wallet and try again."
            )
        error = _error_text(network_result)
        if error:
            raise IdentityUnavailable(error)
        return AgentIdentity(
            address=address,
            network_passphrase=network_result.get("networkPassphrase") or "",
        )

    async def sign(self, envelope_xdr: str, network_passphrase: str, signer_address: str) -> str:
        """Ask the agent to sign; returns the signed envelope XDR."""
        try:
            result = await self.transport.sign_transaction(envelope_xdr, network_passphrase, signer_address)
        except httpx.HTTPError as exc:
            raise SigningRejected(f"Signing agent error: {exc}")

        error = _error_text(result)
        if error:
            raise SigningRejected(error)
        signed_xdr = result.get("signedTxXdr")
        if not signed_xdr:
            raise SigningRejected("Signing agent returned no signed transaction")

        returned_signer = result.get("signerAddress")
        if returned_signer and returned_signer != signer_address:
            raise SigningRejected(f"Signed by {returned_signer}, expected {signer_address}")

        _verify_signed_for_network(signed_xdr, network_passphrase, signer_address)
        return signed_xdr


def _verify_signed_for_network(signed_xdr: str, network_passphrase: str, signer_address: str) -> None:
    """The envelope must carry a signature by `signer_address` over this network's hash."""
    try:
        envelope = TransactionEnvelope.from_xdr(signed_xdr, network_passphrase)
    except Exception as exc:
        raise SigningRejected(f"Signed transaction is not valid XDR: {exc!r}")

    keypair = Keypair.from_public_key(signer_address)
    tx_hash = envelope.hash()
    for decorated in envelope.signatures:
        try:
            keypair.verify(tx_hash, decorated.signature)
            return
        except BadSignatureError:
            continue
    raise SigningRejected("Signature does not match the requested network or signer")
