"""
Ethereum Wallet Authentication Utilities

This module builds the sign-in challenge a wallet has to sign and verifies the returned
signature. The challenge uses the EIP-4361 ("Sign-In with Ethereum") text layout and the
wallet signs it as an EIP-191 personal message.

Authentication Flow:
1. Client asks for the challenge of its address -> build_challenge()
   (or builds the very same message itself from FRONTEND_URL, CHAIN_ID and the clock)
2. Wallet signs challenge.prepare_message() (personal_sign)
3. Client sends: username, signAddress, signedSig
4. Backend rebuilds the challenge and verifies it -> verify_challenge_signature()
   - Checks the domain embedded in the message is our domain
   - Recovers the signer from the signature
   - Compares the signer with the address in the message

Replay window:
The nonce is the wallet address itself and issuedAt is the current hour (UTC, minutes,
seconds and milliseconds zeroed). The message therefore only changes once an hour, and a
captured signature keeps verifying until the hour rolls over. There is no server-side
nonce tracking.

Signature recovery uses the eth-account library.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple
from urllib.parse import urlsplit

from eth_account import Account
from eth_account.messages import encode_defunct

from app.core.config import settings

logger = logging.getLogger(__name__)

SIWE_VERSION = "1"


@dataclass(frozen=True)
class ChallengeMessage:
    domain: str
    address: str
    statement: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: datetime

    @property
    def issued_at_iso(self) -> str:
        # same shape as JavaScript's Date.toISOString(), e.g. 2024-01-01T10:00:00.000Z
        return self.issued_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")

    def prepare_message(self) -> str:
        """Canonical EIP-4361 text, the exact string the wallet signs."""
        return (
            f"{self.domain} wants you to sign in with your Ethereum account:\n"
            f"{self.address}\n"
            f"\n"
            f"{self.statement}\n"
            f"\n"
            f"URI: {self.uri}\n"
            f"Version: {self.version}\n"
            f"Chain ID: {self.chain_id}\n"
            f"Nonce: {self.nonce}\n"
            f"Issued At: {self.issued_at_iso}"
        )


def trust_domain(frontend_url: Optional[str] = None) -> Tuple[str, str]:
    """
    Derive (domain, origin) from the frontend URL.
    e.g. "https://app.acme.bet/login" -> ("app.acme.bet", "https://app.acme.bet")
    """
    parts = urlsplit(frontend_url or settings.FRONTEND_URL)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"FRONTEND_URL must be an absolute URL, got: {frontend_url or settings.FRONTEND_URL}")
    return parts.netloc, f"{parts.scheme}://{parts.netloc}"


def truncate_to_hour(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def build_challenge(
    address: str,
    *,
    domain: str,
    uri: str,
    now: Optional[datetime] = None,
) -> ChallengeMessage:
    """
    Build the sign-in challenge for a wallet address.

    Pure function of (domain, address, current hour): two builds within the same clock
    hour are identical.

    Args:
        address: Wallet address that will sign, also used as the nonce
        domain: Host of the frontend origin (see trust_domain())
        uri: Frontend origin
        now: Current time, defaults to the system clock

    Returns:
        ChallengeMessage with issued_at truncated to the top of the hour
    """
    return ChallengeMessage(
        domain=domain,
        address=address,
        statement=settings.SIWE_STATEMENT,
        uri=uri,
        version=SIWE_VERSION,
        chain_id=settings.CHAIN_ID,
        nonce=address,
        issued_at=truncate_to_hour(now or datetime.now(timezone.utc)),
    )


def _recover_signer(text: str, signature: str) -> str:
    """Helper: recover the address that produced an EIP-191 signature over text."""
    return Account.recover_message(encode_defunct(text=text), signature=signature)


def verify_challenge_signature(message: ChallengeMessage, signature: Optional[str], *, domain: str) -> bool:
    """
    Verify a wallet signature over a challenge message.

    Checks:
    1. The message was built for our domain
    2. The signature is present and well formed
    3. The recovered signer is the address in the message

    Never raises: any failure, including a malformed signature, returns False.
    """
    if message.domain != domain:
        logger.info("Challenge domain mismatch: %s != %s", message.domain, domain)
        return False

    if not signature or not signature.strip():
        return False

    try:
        signer = _recover_signer(message.prepare_message(), signature.strip())
    except Exception as e:
        logger.info("Could not recover signer from signature: %s", type(e).__name__)
        return False

    return signer.lower() == message.address.lower()
