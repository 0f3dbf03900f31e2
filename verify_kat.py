#!/usr/bin/env python3
"""
Generate and verify known-answer test (KAT) vectors for the MLWE PKE

Every vector is produced from its own seed: the seed drives a numpy
Generator that replaces the default random source, so keygen and
encryption are reproducible. A vector records SHA-256 digests of the
public key, private key and ciphertext together with the message and
the decrypted message.

Verification regenerates each vector from its seed and checks:
1. pk / sk / ct digests match
2. the decrypted message equals the message
3. the recorded verify field

Usage:
    python verify_kat.py generate kat.json [--level toy] [--count 10] [--seed 0]
    python verify_kat.py verify kat.json
"""

import argparse
import hashlib
import json
import sys
from dataclasses import asdict
from pathlib import Path

import numpy as np

from pke_mlwe import MLWE_PKE, SECURITY_LEVELS, get_security_params

ALGORITHM = "MLWE-PKE"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def vector_seeds(seed: int, count: int):
    """One independent seed per vector, derived from the master seed."""
    return [int(s) for s in np.random.default_rng(seed).integers(0, 2**63 - 1, size=count)]


def kat_message(count: int) -> str:
    return f"KAT vector #{count}: Hey Bob, Alice here, how are you?"


def compute_vector(level: str, count: int, seed: int) -> dict:
    """Run keygen / encrypt / decrypt under a seeded random source."""
    pke = MLWE_PKE.from_security_level(level, rng=np.random.default_rng(seed))
    message = kat_message(count)

    pk, sk = pke.keygen()
    ct = pke.encrypt_message(message, pk)
    dec_msg = pke.decrypt_message(ct, sk)

    return {
        "count": count,
        "seed": seed,
        "pk": sha256_hex(pk.t.to_bytes() + pk.A.to_bytes()),
        "sk": sha256_hex(sk.s.to_bytes()),
        "ct": sha256_hex(b"".join(block.to_bytes() for block in ct)),
        "blocks": len(ct),
        "msg": message.encode("latin-1").hex(),
        "dec_msg": dec_msg.encode("latin-1").hex(),
        "verify": "PASS" if dec_msg == message else "FAIL",
    }


def generate_kat_vectors(level: str = "toy", count: int = 10, seed: int = 0) -> dict:
    """Generate a KAT document for a security level."""
    params = get_security_params(level)
    return {
        "algorithm": ALGORITHM,
        "level": level,
        "parameters": asdict(params),
        "test_vectors": [compute_vector(level, i, s) for i, s in enumerate(vector_seeds(seed, count))],
    }


def write_json_kat(filename, data: dict) -> None:
    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)


def verify_json_kat(filename) -> bool:
    """Verify JSON format KAT file"""
    print(f"\nVerifying JSON KAT file: {filename}")

    with open(filename, 'r') as f:
        data = json.load(f)

    level = data.get('level')
    print(f"  Algorithm: {data.get('algorithm', 'N/A')}")
    print(f"  Parameters: {data.get('parameters', {})}")

    if level not in SECURITY_LEVELS:
        print(f"  Unknown security level: {level}")
        return False
    if data.get('parameters') != asdict(get_security_params(level)):
        print(f"  Parameters do not match security level {level}")
        return False

    vectors = data.get('test_vectors', [])
    print(f"  Test vectors: {len(vectors)}")

    passed = 0
    failed = 0
    for v in vectors:
        count = v.get('count', '?')

        required = ['count', 'seed', 'pk', 'sk', 'ct', 'msg', 'dec_msg', 'verify']
        missing = [f for f in required if f not in v]
        if missing:
            print(f"  Vector {count}: FAIL - missing fields: {missing}")
            failed += 1
            continue

        expected = compute_vector(level, v['count'], v['seed'])
        mismatched = [f for f in ('pk', 'sk', 'ct', 'msg', 'dec_msg') if v[f].lower() != expected[f]]
        msg_match = v['msg'].lower() == v['dec_msg'].lower()

        if not mismatched and msg_match and v['verify'] == 'PASS':
            passed += 1
        else:
            failed += 1
            print(f"  Vector {count}: FAIL")
            if mismatched:
                print(f"    mismatched fields: {mismatched}")
            if not msg_match:
                print("    msg != dec_msg")
            if v['verify'] != 'PASS':
                print(f"    verify = {v['verify']}")

    print(f"\nPKE Results: {passed} passed, {failed} failed")
    return failed == 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate or verify MLWE PKE KAT vectors.")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="write a KAT file")
    gen.add_argument("path", type=Path)
    gen.add_argument("--level", default="toy", choices=sorted(SECURITY_LEVELS))
    gen.add_argument("--count", type=int, default=10)
    gen.add_argument("--seed", type=int, default=0)

    ver = sub.add_parser("verify", help="verify a KAT file")
    ver.add_argument("path", type=Path)

    args = parser.parse_args(argv)

    print("=" * 60)
    print("MLWE PKE KAT")
    print("=" * 60)

    if args.command == "generate":
        data = generate_kat_vectors(args.level, args.count, args.seed)
        write_json_kat(args.path, data)
        failures = [v['count'] for v in data['test_vectors'] if v['verify'] != 'PASS']
        print(f"Wrote {len(data['test_vectors'])} vector(s) for {args.level} to {args.path}")
        if failures:
            print(f"Vectors with decryption failures: {failures}")
        return 0 if not failures else 1

    if not args.path.exists():
        print(f"\nKAT file not found: {args.path}")
        return 1

    all_passed = verify_json_kat(args.path)
    print("\n" + "=" * 60)
    if all_passed:
        print("All KAT verifications PASSED!")
    else:
        print("Some KAT verifications FAILED!")
    print("=" * 60)
    return 0 if all_passed else 1


if __name__ == '__main__':
    sys.exit(main())
