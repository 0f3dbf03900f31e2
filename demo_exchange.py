#!/usr/bin/env python3
"""
Alice / Bob message exchange over the module-LWE PKE.

Both parties generate a keypair, then each encrypts a message under the
other's public key. An eavesdropper only sees the encrypted blocks.

Usage:
    python demo_exchange.py [--level L5] [--debug]
"""

import argparse
import logging
import sys

from pke_mlwe import MLWE_PKE, SECURITY_LEVELS, DEFAULT_SECURITY_LEVEL

MSG_ALICE = "Hey Bob, Alice here, how are you?"
MSG_BOB = "Yes Alice, this is Bob, I'm fine, how are you too?"


def separator_line():
    print("-" * 102)


def exchange(pke: MLWE_PKE, sender: str, receiver: str, message: str, receiver_keys) -> bool:
    """Encrypt message under the receiver's public key and decrypt it back."""
    pk, sk = receiver_keys
    print(f"{sender} writes: {message}")
    blocks = pke.encrypt_message(message, pk)
    print(f"Eve reads: {len(blocks)} encrypted block(s), "
          f"u={blocks[0].u}, v={blocks[0].v}")
    decrypted = pke.decrypt_message(blocks, sk)
    print(f"{receiver} reads: {decrypted}")
    match = decrypted == message
    print(f"MATCH: {match}")
    return match


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Exchange two messages between Alice and Bob.")
    parser.add_argument("--level", choices=sorted(SECURITY_LEVELS), default=DEFAULT_SECURITY_LEVEL,
                        help="security level preset (default: %(default)s)")
    parser.add_argument("--debug", action="store_true", help="trace intermediate values")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format="[%(levelname)s]: %(message)s")

    pke = MLWE_PKE.from_security_level(args.level)
    print(f"Parameters: {pke.params.name} (n={pke.n}, k={pke.k}, q={pke.q})")

    # Generate Alice and Bob keys.
    alice_keys = pke.keygen()
    bob_keys = pke.keygen()

    separator_line()
    ok_alice = exchange(pke, "Alice", "Bob", MSG_ALICE, bob_keys)
    separator_line()
    ok_bob = exchange(pke, "Bob", "Alice", MSG_BOB, alice_keys)
    separator_line()

    print("End")
    return 0 if ok_alice and ok_bob else 1


if __name__ == "__main__":
    sys.exit(main())
