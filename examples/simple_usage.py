#!/usr/bin/env python3
"""
Simple example of using the Warp SDK.
"""
import logging
import os

from warp_sdk import (
    AccountConfig,
    Call,
    EcdsaOwners,
    LocalSigner,
    OnchainAccount,
    ProtocolConfig,
    TokenRequest,
    Transaction,
    WarpClient,
    WarpError,
)

BASE = 8453
ARBITRUM = 42161
USDC_ON_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def main():
    """
    Demonstrate basic usage of the WarpClient.

    This example shows how to:
    1. Configure an existing smart account and its owner
    2. Route a USDC transfer on Base, funded from Arbitrum
    3. Wait for the settlement to be filled
    """
    logging.basicConfig(level=logging.INFO)

    ACCOUNT_ADDRESS = os.environ.get("ACCOUNT_ADDRESS")
    OWNER_KEY = os.environ.get("OWNER_PRIVATE_KEY")
    API_KEY = os.environ.get("WARP_API_KEY")
    RECIPIENT = os.environ.get("RECIPIENT", "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045")

    if not ACCOUNT_ADDRESS or not OWNER_KEY:
        print("ERROR: ACCOUNT_ADDRESS and OWNER_PRIVATE_KEY environment variables are required")
        return

    protocol = ProtocolConfig.get_protocol()
    account = OnchainAccount(
        ACCOUNT_ADDRESS,
        rpc_urls={
            BASE: os.environ.get("BASE_RPC_URL", "https://mainnet.base.org"),
            ARBITRUM: os.environ.get("ARBITRUM_RPC_URL", "https://arb1.arbitrum.io/rpc"),
        },
        entry_point=protocol.entry_point,
    )
    client = WarpClient(AccountConfig(
        account=account,
        owners=EcdsaOwners(accounts=(LocalSigner(OWNER_KEY),)),
        api_key=API_KEY,
    ))

    # transfer(address,uint256) of 1 USDC
    amount = 10**6
    transfer_data = (
        "0xa9059cbb"
        + RECIPIENT[2:].lower().rjust(64, "0")
        + hex(amount)[2:].rjust(64, "0")
    )
    transaction = Transaction(
        source_chain=ARBITRUM,
        target_chain=BASE,
        calls=(Call(to=USDC_ON_BASE, data=transfer_data),),
        token_requests=(TokenRequest(address=USDC_ON_BASE, amount=amount),),
    )

    try:
        result = client.send_transaction(transaction)
        print(f"Bundle submitted with id {result.id}")

        status = client.wait_for_execution(result, timeout=300)
        print(f"Bundle finished with status {status.status.value}")
        if status.fill_transaction_hash:
            print(f"Fill transaction: {status.fill_transaction_hash}")

    except WarpError as e:
        print(f"Error sending transaction: {e}")


if __name__ == "__main__":
    main()
