"""Stellar address helpers."""
from stellar_sdk import StrKey

from app.core.config import settings


def is_valid_address(address: str) -> bool:
    """56-character base32 ed25519 public key (G...) with a valid checksum."""
    if not isinstance(address, str) or len(address) != 56:
        return False
    return StrKey.is_valid_ed25519_public_key(address)


def shorten_address(address: str) -> str:
    if not address:
        return ""
    return f"{address[:4]}...{address[-4:]}"


def explorer_url(tx_hash: str) -> str:
    return f"{settings.EXPLORER_TX_URL}{tx_hash}"
