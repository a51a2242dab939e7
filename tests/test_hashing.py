"""
Tests for settlement bundle struct hashing.
"""
import pytest
from eth_abi import encode as abi_encode
from eth_account.messages import encode_typed_data
from eth_utils import keccak

from warp_sdk.config import ProtocolConfig
from warp_sdk.exceptions import BundleSealedError
from warp_sdk.hashing import (
    AccountDomain,
    get_bundle_hash,
    get_compact_domain_separator,
    get_session_allowed_erc7739_content,
    hash_bundle_struct,
    hash_erc7739,
    hash_execution,
    hash_execution_array,
    hash_segments,
    typed_data_digest,
)
from warp_sdk.models import Execution, SettlementBundle

from conftest import BASE, OPTIMISM, TEST_ACCOUNT, TEST_INJECTED, make_bundle_json

XCHAIN_EXEC_TYPE = "XchainExec(address to,uint256 value,bytes data)"
WITNESS_TYPE = (
    "Witness(address recipient,uint256[2][] tokenOut,uint256 depositId,uint256 targetChain,"
    "uint32 fillDeadline,XchainExec[] execs,bytes32 userOpHash,uint32 maxFeeBps)"
    "XchainExec(address to,uint256 value,bytes data)"
)
SEGMENT_TYPE = (
    "Segment(address arbiter,uint256 chainId,uint256[2][] idsAndAmounts,Witness witness)"
    "Witness(address recipient,uint256[2][] tokenOut,uint256 depositId,uint256 targetChain,"
    "uint32 fillDeadline,XchainExec[] execs,bytes32 userOpHash,uint32 maxFeeBps)"
    "XchainExec(address to,uint256 value,bytes data)"
)
COMPACT_TYPE = (
    "MultichainCompact(address sponsor,uint256 nonce,uint256 expires,Segment[] segments)"
    "Segment(address arbiter,uint256 chainId,uint256[2][] idsAndAmounts,Witness witness)"
    "Witness(address recipient,uint256[2][] tokenOut,uint256 depositId,uint256 targetChain,"
    "uint32 fillDeadline,XchainExec[] execs,bytes32 userOpHash,uint32 maxFeeBps)"
    "XchainExec(address to,uint256 value,bytes data)"
)

# Base Sepolia -> OP Sepolia route as returned by the backend
SEPOLIA_BUNDLE = {
    "sponsor": "0x306651f0849c673fdd047e02b12876c3f3a0ea7f",
    "nonce": "9485744147263218405930911645136653780776457667745611332784875666970100155394",
    "expires": "1779186360",
    "segments": [
        {
            "arbiter": "0x0000000000AFc904aE9860D9c4B96D7c529c58b8",
            "chainId": "84532",
            "idsAndAmounts": [
                [
                    "21847980266613871481014731415167448634647776251198795536684055616834884337664",
                    "27972738278553",
                ]
            ],
            "witness": {
                "recipient": "0x306651f0849c673fdd047e02b12876c3f3a0ea7f",
                "tokenOut": [
                    ["21847980266613871481014731415714625498819945639464912901926990218956488388823", "1"]
                ],
                "depositId": "9485744147263218405930911645136653780776457667745611332784875666970100155394",
                "targetChain": "11155420",
                "fillDeadline": "1747650660",
                "execs": [],
                "userOpHash": "0x77de857754318bd623d5fcfe907f521b5702e66f7620497a1240b00c3cf687d4",
                "maxFeeBps": "0",
            },
        }
    ],
}
SEPOLIA_APP_DOMAIN_SEPARATOR = bytes.fromhex("f5f6dfa751763cc5278cba45d03ea9797c1660b2cb7f5ffd188fa3e8523abdca")
SEPOLIA_ACCOUNT_DOMAIN = AccountDomain(
    name="Nexus",
    version="1.2.0",
    chain_id=84532,
    verifying_contract="0x6eCBF67Ec3C83F69793f47a6d285205211Cce6B8",
)

EXECS = [
    {"to": TEST_INJECTED, "value": "0", "data": "0xdeadbeef"},
    {"to": TEST_ACCOUNT, "value": "1000", "data": "0x"},
]


def _bundle(**kwargs):
    return SettlementBundle.model_validate(make_bundle_json(**kwargs))


def test_type_strings_match_protocol():
    """The configured type strings are the canonical EIP-712 encodings"""
    protocol = ProtocolConfig.get_protocol()
    assert protocol.types["XchainExec"] == XCHAIN_EXEC_TYPE
    assert protocol.types["Witness"] == WITNESS_TYPE
    assert protocol.types["Segment"] == SEGMENT_TYPE
    assert protocol.types["MultichainCompact"] == COMPACT_TYPE


def test_hash_execution_reference():
    execution = Execution(to=TEST_INJECTED, value=5, data="0xdeadbeef")
    expected = keccak(abi_encode(
        ["bytes32", "address", "uint256", "bytes32"],
        [keccak(text=XCHAIN_EXEC_TYPE), execution.to, 5, keccak(b"\xde\xad\xbe\xef")],
    ))
    assert hash_execution(execution) == expected


def test_empty_execution_array_hashes_as_empty_keccak():
    """An empty execs list is hashed, never omitted"""
    assert hash_execution_array([]) == keccak(b"")


def test_bundle_struct_hash_known_vector():
    """Struct hash of a live Base Sepolia route"""
    bundle = SettlementBundle.model_validate(SEPOLIA_BUNDLE)
    assert hash_bundle_struct(bundle) == bytes.fromhex(
        "6622d2a44c958ffed7b7b3746f4fc9c2e39543858f6f176cc58ccf7741c65b4a"
    )


def test_hash_erc7739_known_vector():
    """Session digest for the same route inside a Nexus 1.2.0 account domain"""
    bundle = SettlementBundle.model_validate(SEPOLIA_BUNDLE)
    result = hash_erc7739(bundle, SEPOLIA_ACCOUNT_DOMAIN, SEPOLIA_APP_DOMAIN_SEPARATOR)
    assert result.hash == bytes.fromhex("8b5043375be2b2c81bffc55e91991c91f9b4daec94999cc934071e32e0c2bc83")
    assert result.struct_hash == bytes.fromhex("6622d2a44c958ffed7b7b3746f4fc9c2e39543858f6f176cc58ccf7741c65b4a")
    assert result.app_domain_separator == SEPOLIA_APP_DOMAIN_SEPARATOR
    assert result.contents_type == COMPACT_TYPE
    assert bundle.sealed


def test_domain_separator_matches_eth_account():
    """The compact domain separator agrees with eth-account's EIP-712 encoder"""
    protocol = ProtocolConfig.get_protocol()
    typed = {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "XchainExec": [
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
            ],
        },
        "primaryType": "XchainExec",
        "domain": {
            "name": "The Compact",
            "version": "0",
            "chainId": BASE,
            "verifyingContract": protocol.hook_address,
        },
        "message": {"to": TEST_INJECTED, "value": 5, "data": b"\xde\xad\xbe\xef"},
    }
    signable = encode_typed_data(full_message=typed)
    assert signable.header == get_compact_domain_separator(BASE)
    assert signable.body == hash_execution(Execution(to=TEST_INJECTED, value=5, data="0xdeadbeef"))


def test_bundle_hash_matches_eth_account_without_token_pairs():
    """With no id/amount pairs the packed and EIP-712 array encodings coincide"""
    data = make_bundle_json(chain_ids=(BASE, OPTIMISM), execs=EXECS)
    for segment in data["segments"]:
        segment["idsAndAmounts"] = []
        segment["witness"]["tokenOut"] = []
    bundle = SettlementBundle.model_validate(data)
    protocol = ProtocolConfig.get_protocol()

    typed = {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "MultichainCompact": [
                {"name": "sponsor", "type": "address"},
                {"name": "nonce", "type": "uint256"},
                {"name": "expires", "type": "uint256"},
                {"name": "segments", "type": "Segment[]"},
            ],
            "Segment": [
                {"name": "arbiter", "type": "address"},
                {"name": "chainId", "type": "uint256"},
                {"name": "idsAndAmounts", "type": "uint256[2][]"},
                {"name": "witness", "type": "Witness"},
            ],
            "Witness": [
                {"name": "recipient", "type": "address"},
                {"name": "tokenOut", "type": "uint256[2][]"},
                {"name": "depositId", "type": "uint256"},
                {"name": "targetChain", "type": "uint256"},
                {"name": "fillDeadline", "type": "uint32"},
                {"name": "execs", "type": "XchainExec[]"},
                {"name": "userOpHash", "type": "bytes32"},
                {"name": "maxFeeBps", "type": "uint32"},
            ],
            "XchainExec": [
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "data", "type": "bytes"},
            ],
        },
        "primaryType": "MultichainCompact",
        "domain": {
            "name": "The Compact",
            "version": "0",
            "chainId": BASE,
            "verifyingContract": protocol.hook_address,
        },
        "message": {
            "sponsor": bundle.sponsor,
            "nonce": bundle.nonce,
            "expires": bundle.expires,
            "segments": [
                {
                    "arbiter": s.arbiter,
                    "chainId": s.chain_id,
                    "idsAndAmounts": [],
                    "witness": {
                        "recipient": s.witness.recipient,
                        "tokenOut": [],
                        "depositId": 0,
                        "targetChain": s.witness.target_chain,
                        "fillDeadline": s.witness.fill_deadline,
                        "execs": [
                            {"to": e.to, "value": e.value, "data": bytes.fromhex(e.data[2:])}
                            for e in s.witness.execs
                        ],
                        "userOpHash": b"\x00" * 32,
                        "maxFeeBps": 0,
                    },
                }
                for s in bundle.segments
            ],
        },
    }
    signable = encode_typed_data(full_message=typed)
    assert hash_bundle_struct(bundle) == signable.body
    assert get_bundle_hash(bundle) == keccak(b"\x19\x01" + signable.header + signable.body)


def test_bundle_hash_is_deterministic():
    assert get_bundle_hash(_bundle(execs=EXECS)) == get_bundle_hash(_bundle(execs=EXECS))


def test_segment_order_changes_hash():
    forward = _bundle(chain_ids=(OPTIMISM, BASE))
    reverse = _bundle(chain_ids=(BASE, OPTIMISM))
    assert hash_bundle_struct(forward) != hash_bundle_struct(reverse)


def test_execution_order_changes_hash():
    forward = _bundle(execs=EXECS)
    reverse = _bundle(execs=list(reversed(EXECS)))
    assert get_bundle_hash(forward) != get_bundle_hash(reverse)


def test_domain_bound_to_first_segment():
    """The digest uses the notarized (first) segment's chain id"""
    bundle = _bundle(chain_ids=(OPTIMISM, BASE))
    expected = typed_data_digest(get_compact_domain_separator(OPTIMISM), hash_bundle_struct(bundle))
    assert get_bundle_hash(bundle) == expected


def test_empty_segments_rejected():
    with pytest.raises(ValueError, match="empty segment list"):
        hash_segments([])


def test_hashing_seals_bundle():
    """A hashed bundle cannot be modified"""
    bundle = _bundle()
    get_bundle_hash(bundle)
    assert bundle.sealed
    with pytest.raises(BundleSealedError):
        bundle.with_executions([], [])


def test_session_allowed_content():
    protocol = ProtocolConfig.get_protocol()
    separator, contents_type = get_session_allowed_erc7739_content(BASE)
    assert separator == get_compact_domain_separator(BASE)
    assert contents_type == protocol.types["MultichainCompact"]


def test_hash_erc7739_differs_from_plain_hash():
    domain = AccountDomain(name="Nexus", version="1.0.0", chain_id=BASE, verifying_contract=TEST_ACCOUNT)
    assert hash_erc7739(_bundle(), domain).hash != get_bundle_hash(_bundle())
