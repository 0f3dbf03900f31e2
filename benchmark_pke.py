#!/usr/bin/env python3
"""
Benchmark: MLWE PKE timings and measured decryption-failure rate
================================================================

For every requested security level this script times key generation,
message encryption and message decryption, and measures how often a
random message survives the encrypt/decrypt round trip. Decryption
failure is a property of the parameter set, so it is measured here
rather than asserted.

Reference sizes for ML-KEM are taken from FIPS 203 (compressed
encodings); the sizes reported for this scheme are uncompressed, one
ceil(log2(q))-bit word per coefficient.
"""

import argparse
import string
import sys
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from pke_mlwe import MLWE_PKE, SECURITY_LEVELS

PRINTABLE = string.printable


@dataclass
class PKEBenchmark:
    """PKE benchmark results"""
    name: str
    security_level: str
    keygen_ms: float
    encrypt_ms: float
    decrypt_ms: float
    pk_bytes: int
    ct_block_bytes: int
    trials: int = 0
    passes: int = 0

    @property
    def pass_rate(self) -> float:
        return self.passes / self.trials if self.trials else 0.0


@dataclass
class ReferenceSizes:
    name: str
    security_level: str
    pk_bytes: int
    ct_bytes: int


REFERENCE_SIZES = [
    ReferenceSizes("ML-KEM-512", "L1", 800, 768),
    ReferenceSizes("ML-KEM-768", "L3", 1184, 1088),
    ReferenceSizes("ML-KEM-1024", "L5", 1568, 1568),
]


def random_message(length: int, rng: np.random.Generator) -> str:
    """Random printable ASCII string."""
    indices = rng.integers(0, len(PRINTABLE), size=length)
    return "".join(PRINTABLE[i] for i in indices)


def measure_round_trip_rate(pke: MLWE_PKE, trials: int, message_length: int = 32,
                            rng: Optional[np.random.Generator] = None) -> Tuple[int, int]:
    """
    Count successful round trips over fresh keys and random messages.

    Returns:
        (passes, trials)
    """
    rng = rng if rng is not None else np.random.default_rng()
    passes = 0
    for _ in range(trials):
        message = random_message(message_length, rng)
        pk, sk = pke.keygen()
        if pke.decrypt_message(pke.encrypt_message(message, pk), sk) == message:
            passes += 1
    return passes, trials


def run_benchmark(level: str, iterations: int, trials: int) -> PKEBenchmark:
    pke = MLWE_PKE.from_security_level(level)
    message = "Benchmark message for testing!"

    # Benchmark keygen
    start = time.perf_counter()
    for _ in range(iterations):
        pk, sk = pke.keygen()
    keygen_time = (time.perf_counter() - start) / iterations * 1000

    # Benchmark encrypt
    start = time.perf_counter()
    for _ in range(iterations):
        ct = pke.encrypt_message(message, pk)
    enc_time = (time.perf_counter() - start) / iterations * 1000

    # Benchmark decrypt
    start = time.perf_counter()
    for _ in range(iterations):
        pke.decrypt_message(ct, sk)
    dec_time = (time.perf_counter() - start) / iterations * 1000

    passes, total = measure_round_trip_rate(pke, trials)
    sizes = pke.get_key_sizes()

    return PKEBenchmark(
        name=pke.params.name,
        security_level=level,
        keygen_ms=keygen_time,
        encrypt_ms=enc_time,
        decrypt_ms=dec_time,
        pk_bytes=sizes["public_key_bytes"],
        ct_block_bytes=sizes["ciphertext_block_bytes"],
        trials=total,
        passes=passes,
    )


def run_benchmarks(levels: List[str], iterations: int, trials: int) -> List[PKEBenchmark]:
    results = []
    for level in levels:
        print(f"\n--- {level} ---")
        result = run_benchmark(level, iterations, trials)
        print(f"  KeyGen:  {result.keygen_ms:.2f} ms")
        print(f"  Encrypt: {result.encrypt_ms:.2f} ms")
        print(f"  Decrypt: {result.decrypt_ms:.2f} ms")
        print(f"  Round trips: {result.passes}/{result.trials}")
        results.append(result)
    return results


def print_results_table(results: List[PKEBenchmark]):
    print(f"\n{'=' * 100}")
    print(" Results")
    print(f"{'=' * 100}")
    print(f"{'Scheme':<25} {'KeyGen':>10} {'Encrypt':>10} {'Decrypt':>10} "
          f"{'PK':>10} {'CT/block':>10} {'Pass rate':>12}")
    print("-" * 100)
    for b in results:
        print(f"{b.name:<25} {b.keygen_ms:>8.2f}ms {b.encrypt_ms:>8.2f}ms {b.decrypt_ms:>8.2f}ms "
              f"{b.pk_bytes:>9}B {b.ct_block_bytes:>9}B {b.pass_rate:>11.2%}")
    print()


def print_size_comparison(results: List[PKEBenchmark]):
    print(f"\n{'=' * 80}")
    print(" Size comparison with ML-KEM (compressed encodings)")
    print(f"{'=' * 80}")
    for b in results:
        ref = next((r for r in REFERENCE_SIZES if r.security_level == b.security_level), None)
        if ref is None:
            continue
        print(f"  {b.name}: PK={b.pk_bytes}B CT/block={b.ct_block_bytes}B  vs  "
              f"{ref.name}: PK={ref.pk_bytes}B CT={ref.ct_bytes}B "
              f"({b.pk_bytes / ref.pk_bytes:.1f}x / {b.ct_block_bytes / ref.ct_bytes:.1f}x)")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Benchmark the MLWE PKE security levels.")
    parser.add_argument("levels", nargs="*", default=["L1", "L3", "L5"],
                        help=f"security levels to run, any of {sorted(SECURITY_LEVELS)}")
    parser.add_argument("--iterations", type=int, default=5, help="timing iterations per operation")
    parser.add_argument("--trials", type=int, default=20, help="random round trips per level")
    args = parser.parse_args(argv)

    unknown = [level for level in args.levels if level not in SECURITY_LEVELS]
    if unknown:
        parser.error(f"unknown security level(s): {', '.join(unknown)}")

    print("=" * 80)
    print(" MLWE PKE Benchmark")
    print("=" * 80)

    results = run_benchmarks(args.levels, args.iterations, args.trials)
    print_results_table(results)
    print_size_comparison(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
