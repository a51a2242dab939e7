"""
Signer resolution.

Maps a signer set (account owners, a session, or recovery guardians) to the
validator that checks it and a ``sign(digest) -> bytes`` callable producing
the raw signature that validator expects.
"""
import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak

from .config import AccountConfig
from .exceptions import SigningError, ValidatorUnavailableError
from .models import (
    GuardianSigners,
    OwnerSet,
    OwnerSigners,
    SessionSigners,
    SignerSet,
    ValidatorRef,
)
from .utils import hex_to_bytes
from .validators import (
    Module,
    get_owner_validator,
    get_social_recovery_validator,
    pack_validator_id,
    parse_public_key,
)

logger = logging.getLogger(__name__)

ECDSA_SIGNATURE_LENGTH = 65
P256_ORDER = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551


class Signer(Protocol):
    """Protocol for custom ECDSA signers"""
    address: str

    def sign_hash(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest and return a 65-byte ``r || s || v`` signature"""
        ...


@dataclass(frozen=True)
class WebAuthnAssertion:
    authenticator_data: bytes
    client_data_json: str
    challenge_index: int
    type_index: int
    r: int
    s: int


class PasskeyAccount(Protocol):
    """Protocol for WebAuthn authenticators"""
    id: str
    public_key: bytes

    def sign(self, digest: bytes) -> WebAuthnAssertion:
        """Produce an assertion whose challenge is ``digest``"""
        ...


class LocalSigner:
    """
    ECDSA signer backed by an in-memory eth-account key.

    Digests are signed as EIP-191 personal messages, which is what the
    ownable validator recovers against.
    """

    def __init__(self, account: Union[LocalAccount, str, bytes]):
        if isinstance(account, (str, bytes)):
            account = Account.from_key(account)
        self._account = account

    @classmethod
    def create(cls) -> "LocalSigner":
        return cls(Account.create())

    @property
    def address(self) -> str:
        return self._account.address

    def sign_hash(self, digest: bytes) -> bytes:
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
        signed = self._account.sign_message(encode_defunct(primitive=digest))
        return bytes(signed.signature)


class SoftwarePasskey:
    """
    P-256 passkey held in memory.

    Produces WebAuthn ``webauthn.get`` assertions the same way a platform
    authenticator would; useful for servers and tests.
    """

    def __init__(
        self,
        private_key: Optional[ec.EllipticCurvePrivateKey] = None,
        credential_id: str = "software-passkey",
        rp_id: str = "localhost",
        origin: str = "http://localhost",
    ):
        self._key = private_key or ec.generate_private_key(ec.SECP256R1())
        self.id = credential_id
        self.rp_id = rp_id
        self.origin = origin

    @property
    def public_key(self) -> bytes:
        numbers = self._key.public_key().public_numbers()
        return b"\x04" + numbers.x.to_bytes(32, "big") + numbers.y.to_bytes(32, "big")

    def sign(self, digest: bytes) -> WebAuthnAssertion:
        challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        client_data_json = json.dumps(
            {"type": "webauthn.get", "challenge": challenge, "origin": self.origin, "crossOrigin": False},
            separators=(",", ":"),
        )
        # rpIdHash || flags (UP | UV) || signCount
        authenticator_data = hashlib.sha256(self.rp_id.encode()).digest() + b"\x05" + b"\x00" * 4
        message = authenticator_data + hashlib.sha256(client_data_json.encode()).digest()

        der = self._key.sign(message, ec.ECDSA(hashes.SHA256()))
        r, s = decode_dss_signature(der)
        if s > P256_ORDER // 2:
            s = P256_ORDER - s
        return WebAuthnAssertion(
            authenticator_data=authenticator_data,
            client_data_json=client_data_json,
            challenge_index=client_data_json.index('"challenge":"'),
            type_index=client_data_json.index('"type":"'),
            r=r,
            s=s,
        )


@dataclass(frozen=True)
class ResolvedSigner:
    """A validator plus the callable that produces signatures for it."""
    validator: ValidatorRef
    module: Module
    kind: str
    owners: Any
    sign: Callable[[bytes], bytes]


def generate_credential_id(public_key: Any, account_address: str) -> bytes:
    x, y = parse_public_key(public_key)
    return keccak(abi_encode(["uint256", "uint256", "address"], [x, y, account_address]))


def pack_passkey_signature(credential_ids: Sequence[bytes], assertions: Sequence[WebAuthnAssertion],
                           use_precompile: bool = False) -> bytes:
    """ABI-encode WebAuthn assertions, ordered by credential id."""
    pairs = sorted(zip(credential_ids, assertions), key=lambda pair: pair[0])
    return abi_encode(
        ["bytes32[]", "bool", "(bytes,string,uint256,uint256,uint256,uint256)[]"],
        [
            [cred_id for cred_id, _ in pairs],
            use_precompile,
            [
                (a.authenticator_data, a.client_data_json, a.challenge_index, a.type_index, a.r, a.s)
                for _, a in pairs
            ],
        ],
    )


def _sign_ecdsa(accounts: Sequence[Signer], digest: bytes) -> bytes:
    signatures = []
    for account in accounts:
        signature = hex_to_bytes(account.sign_hash(digest))
        if len(signature) != ECDSA_SIGNATURE_LENGTH:
            raise SigningError(
                f"Signer {account.address} returned {len(signature)} bytes, expected {ECDSA_SIGNATURE_LENGTH}"
            )
        signatures.append(signature)
    return b"".join(signatures)


def make_owner_sign(owners: OwnerSet, account_address: Optional[str] = None) -> Callable[[bytes], bytes]:
    """
    Build the signing callable for an owner set.

    Args:
        owners: ECDSA, passkey or multi-factor owner set
        account_address: Smart account address; required for passkeys since
            credential ids are bound to the account

    Returns:
        Callable mapping a 32-byte digest to the raw validator signature
    """
    kind = getattr(owners, "kind", None)
    if kind in ("ecdsa", "ecdsa-v0"):
        return lambda digest: _sign_ecdsa(owners.accounts, digest)

    if kind == "passkey":
        if not account_address:
            raise ValidatorUnavailableError("Passkey signing requires the account address")

        def sign(digest: bytes) -> bytes:
            assertions = [passkey.sign(digest) for passkey in owners.accounts]
            credential_ids = [generate_credential_id(p.public_key, account_address) for p in owners.accounts]
            return pack_passkey_signature(credential_ids, assertions)

        return sign

    if kind == "multi-factor":
        factors = [
            (index, get_owner_validator(factor), make_owner_sign(factor, account_address))
            for index, factor in owners.factors
        ]

        def sign_factors(digest: bytes) -> bytes:
            return pack_multi_factor_signature(
                [(index, module.address, factor_sign(digest)) for index, module, factor_sign in factors]
            )

        return sign_factors

    raise ValidatorUnavailableError(f"Unsupported owner set: {type(owners).__name__}")


def pack_multi_factor_signature(parts: Sequence[Tuple[int, str, bytes]]) -> bytes:
    """ABI-encode ``(bytes32 packedValidatorAndId, bytes signature)[]`` from ``(id, validator, signature)``."""
    return abi_encode(
        ["(bytes32,bytes)[]"],
        [[(pack_validator_id(index, address), signature) for index, address, signature in parts]],
    )


def resolve_signer(
    config: AccountConfig,
    signers: Optional[SignerSet] = None,
    account_address: Optional[str] = None,
) -> ResolvedSigner:
    """
    Resolve a signer set to its validator and signing callable.

    Args:
        config: Account configuration
        signers: Signer set override; the account's owners when omitted
        account_address: Smart account address (needed for passkeys)

    Returns:
        ResolvedSigner for the requested set

    Raises:
        ValidatorUnavailableError: If the set cannot be served by this account
    """
    protocol = config.protocol
    if signers is None:
        if config.owners is None:
            raise ValidatorUnavailableError("Account has no owners configured")
        signers = OwnerSigners(owners=config.owners)

    if isinstance(signers, OwnerSigners):
        module = get_owner_validator(signers.owners, protocol)
        return ResolvedSigner(
            validator=ValidatorRef(address=module.address, is_root=True),
            module=module,
            kind=signers.owners.kind,
            owners=signers.owners,
            sign=make_owner_sign(signers.owners, account_address),
        )

    if isinstance(signers, SessionSigners):
        if not config.sessions_enabled:
            raise ValidatorUnavailableError("Sessions are not enabled for this account")
        address = config.session_module or protocol.smart_session_emissary
        session_owners = signers.session.owners
        module = Module(address=address, init_data=b"")
        logger.debug(f"Resolved session signer on {address} with {session_owners.kind} owners")
        return ResolvedSigner(
            validator=ValidatorRef(address=address, is_root=False),
            module=module,
            kind="session",
            owners=session_owners,
            sign=make_owner_sign(session_owners, account_address),
        )

    if isinstance(signers, GuardianSigners):
        module = get_social_recovery_validator(
            [g.address for g in signers.guardians],
            threshold=signers.threshold,
            protocol=protocol,
        )
        return ResolvedSigner(
            validator=ValidatorRef(address=module.address, is_root=False),
            module=module,
            kind="guardians",
            owners=signers.guardians,
            sign=lambda digest: _sign_ecdsa(signers.guardians, digest),
        )

    raise ValidatorUnavailableError(f"Unsupported signer set: {type(signers).__name__}")
