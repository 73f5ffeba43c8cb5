#!/usr/bin/env python3
"""
Demo of order-preserving encryption.

This demonstrates the basic usage of the OPE scheme:
1. Encrypt a column of integers
2. Sort and range-query the ciphertexts without decrypting
3. Decrypt the results
"""

import secrets
import sys
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ope import OPE


def main():
    print("=" * 60)
    print("Order-Preserving Encryption Demo")
    print("=" * 60)

    # Parameters: 32-bit plaintexts into a 64-bit ciphertext range
    key = secrets.token_bytes(32)
    ope = OPE(key, domain_bits=32, range_bits=64)
    print(f"\nEngine: {ope}")
    print(f"  - Domain size (M): 2^{ope.params.domain_bits}")
    print(f"  - Range size (N): 2^{ope.params.range_bits}")
    print(f"  - Max search depth: {ope.params.max_depth}")

    # Encrypt a small salary column
    print("\n[1] Encrypting values...")
    salaries = [52000, 87000, 31000, 120000, 64000, 87000, 45000, 99000]
    start = time.time()
    encrypted = [ope.encrypt(s) for s in salaries]
    enc_time = time.time() - start
    for s, c in zip(salaries, encrypted):
        print(f"    {s:>8} -> {c}")
    print(f"    Encrypted {len(salaries)} values in {enc_time*1000:.2f}ms")
    print("    (the two 87000 entries encrypt to different ciphertexts)")

    # Sort on ciphertexts only
    print("\n[2] Sorting ciphertexts...")
    order = sorted(range(len(encrypted)), key=lambda i: encrypted[i])
    sorted_plain = [salaries[i] for i in order]
    print(f"    Plaintexts in ciphertext order: {sorted_plain}")
    print(f"    correct={sorted_plain == sorted(salaries)}")

    # Range query on ciphertexts only
    print("\n[3] Range query 50000 <= salary <= 90000...")
    c_lo, c_hi = ope.encrypt_range(50000, 90000)
    hits = [c for c in encrypted if c_lo <= c <= c_hi]
    expected = sorted(s for s in salaries if 50000 <= s <= 90000)
    decrypted = sorted(ope.decrypt(c) for c in hits)
    print(f"    Matches: {decrypted}")
    print(f"    correct={decrypted == expected}")

    # Summary
    print("\n[4] Summary")
    start = time.time()
    round_trip = all(ope.decrypt(c) == s for s, c in zip(salaries, encrypted))
    dec_time = time.time() - start
    print(f"    Round trip correct: {round_trip}")
    print(f"    Average decrypt time: {dec_time / len(salaries) * 1000:.2f}ms")

    print("\n" + "=" * 60)
    print("Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
