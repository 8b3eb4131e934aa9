#!/usr/bin/env python3
"""
Pool Round Trip Example

This example demonstrates:
- Creating a tally pool in stub mode
- Joining it with placeholder ciphertexts
- Computing and signing the tally
- Verifying the signed result independently
"""

import asyncio
import json

from arxpool import ArxPoolClient, configure, verify_result


async def run() -> None:
    config = configure(
        {
            "mode": "stub",
            "mxe_id": "mxe-demo",
            "attester_secret": "ed25519:" + bytes(range(32)).hex(),
        }
    )
    client = ArxPoolClient(config)

    client.create_pool({"id": "demo-pool", "mode": "tally", "ttlSeconds": 600})
    for index in range(3):
        client.join_pool(
            "demo-pool",
            {
                "ciphertext": f"ciphertext-{index:04d}-placeholder",
                "senderPubkey": f"sender-{index:04d}-public-key-placeholder",
            },
        )

    signed = await client.compute_pool("demo-pool", {"metadata": {"round": 1}})
    print(json.dumps(signed.to_payload(), indent=2))
    print(f"Valid signature: {verify_result(signed)}")


if __name__ == "__main__":
    asyncio.run(run())
