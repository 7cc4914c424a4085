"""
Solana Wallet Authentication Utilities

This module handles the cryptographic side of wallet authentication.

Authentication Flow:
1. Backend generates a random nonce -> generate_nonce()
2. Backend binds wallet address and nonce into one message -> build_auth_message()
3. Frontend signs the message with the wallet (signMessage)
4. Frontend sends: walletAddress, signatureBase64
5. Backend verifies: verify_signature()
   - Decodes the base58 wallet address into its ED25519 public key
   - Verifies the ED25519 signature over the UTF-8 message bytes

The signature verification uses:
- ED25519 cryptography (Solana's signature algorithm) from `cryptography`
- base58 for wallet address and signature decoding
"""

import base64
import binascii
import secrets

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey


NONCE_NUM_BYTES = 24  # 24 bytes = 32 url-safe characters
PUBLIC_KEY_NUM_BYTES = 32
SIGNATURE_NUM_BYTES = 64
AUTH_MESSAGE_TITLE = "Symbiote Authentication"


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for wallet authentication.

    Args:
        num_bytes: Number of random bytes to generate (default: 24)

    Returns:
        URL-safe base64 string without padding
    """
    if num_bytes < NONCE_NUM_BYTES:
        num_bytes = NONCE_NUM_BYTES
    return secrets.token_urlsafe(num_bytes)


def generate_session_token() -> str:
    """Opaque bearer token, 32 random bytes."""
    return secrets.token_urlsafe(32)


def build_auth_message(wallet_address: str, nonce: str) -> str:
    """
    Canonical message a wallet signs to prove control of its key.

    Both the address and the nonce are part of the signed bytes, so a signature
    cannot be replayed for another wallet or another challenge.
    """
    return f"{AUTH_MESSAGE_TITLE}\nWallet: {wallet_address}\nNonce: {nonce}"


def decode_public_key(wallet_address: str) -> bytes:
    """
    Decode a base58 wallet address into its raw public key.

    Raises:
        ValueError: If the address is not base58 or not 32 bytes long
    """
    wallet_address = (wallet_address or "").strip()
    if not wallet_address:
        raise ValueError("wallet address is required")
    try:
        key = base58.b58decode(wallet_address)
    except ValueError:
        raise ValueError(f"wallet address is not base58: {wallet_address}")
    if len(key) != PUBLIC_KEY_NUM_BYTES:
        raise ValueError(f"wallet address must decode to {PUBLIC_KEY_NUM_BYTES} bytes")
    return key


def normalize_wallet_address(wallet_address: str) -> str:
    """Return the canonical base58 form of a wallet address."""
    return base58.b58encode(decode_public_key(wallet_address)).decode()


def decode_signature(value: str) -> bytes:
    """
    Decode a signature sent by a wallet adapter.

    Wallets hand signatures over as base64 most of the time, some tooling uses
    hex or base58, so all three are accepted. Only 64-byte results count.
    """
    value = (value or "").strip()
    decoders = (
        lambda v: base64.b64decode(v, validate=True),
        lambda v: binascii.unhexlify(v.encode()),
        base58.b58decode,
    )
    for decode in decoders:
        try:
            raw = decode(value)
        except (binascii.Error, ValueError):
            continue
        if len(raw) == SIGNATURE_NUM_BYTES:
            return raw
    raise ValueError("signature must be a 64 byte base64, hex or base58 value")


def verify_signature(wallet_address: str, message: str, signature: bytes) -> bool:
    """
    Verify an ED25519 signature made by the wallet over ``message``.

    Args:
        wallet_address: base58 wallet address (the public key itself)
        message: The exact message that was signed
        signature: Raw 64-byte signature

    Returns:
        True if the signature is valid for this wallet, False otherwise
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(decode_public_key(wallet_address))
    except ValueError:
        return False

    try:
        public_key.verify(signature, message.encode("utf-8"))
    except InvalidSignature:
        return False
    return True
