#!/usr/bin/env python3
"""
Stress Test for the Shift-Cipher Guesser.
Evaluates shift recovery against window length, byte noise, plaintext
kind, distance measure, and content that was never shifted text.

Each test has an expected outcome. Pass = expected shift is #1 (or, for
non-text content, confidence stays below the reporting threshold).
"""

import sys
import numpy as np
from hilbert_forensics import ShiftCipherGuesser, shift_encode
from tools.sources import english_bytes, python_source_bytes, get_source

MIN_CONFIDENCE = 0.5


# ── Helpers ──────────────────────────────────────────────────────────

def add_noise(data, noise_level, rng):
    """Replace noise_level fraction of bytes with random noise."""
    arr = np.frombuffer(data, dtype=np.uint8).copy()
    n_noise = int(len(arr) * noise_level)
    indices = rng.choice(len(arr), n_noise, replace=False)
    arr[indices] = rng.integers(0, 256, n_noise, dtype=np.uint8)
    return arr.tobytes()


# ── Test runner ──────────────────────────────────────────────────────

results_log = []


def run_test(name, data, guesser, expected_shift=None):
    """
    expected_shift: int -> best shift must equal it
                    None -> confidence must stay below MIN_CONFIDENCE
    """
    g = guesser.guess(data)
    if expected_shift is None:
        passed = g.confidence < MIN_CONFIDENCE
    else:
        passed = g.best_shift == expected_shift
    tag = "PASS" if passed else "FAIL"
    results_log.append((name, tag, expected_shift, g.best_shift))
    print(f"  [{tag}] {name:<40} got {g.best_shift:>3} "
          f"(runner-up {g.runner_up_shift:>3}, {g.matched_signature:<13} conf {g.confidence:.2f})")


# ── Scenarios ────────────────────────────────────────────────────────

def scenario_window_length(guesser, rng):
    print("\n" + "=" * 64)
    print("SCENARIO 1: WINDOW LENGTH")
    print("=" * 64)
    for size in [32, 64, 128, 256, 1024, 4096]:
        shift = int(rng.integers(1, 256))
        run_test(f"English, {size} B, shift {shift}",
                 shift_encode(english_bytes(rng, size), shift), guesser, shift)


def scenario_noise(guesser, rng):
    print("\n" + "=" * 64)
    print("SCENARIO 2: BYTE NOISE")
    print("=" * 64)
    plain = english_bytes(rng, 2048)
    for level in [0.0, 0.1, 0.3, 0.5]:
        run_test(f"English + {level:.0%} noise, shift 77",
                 shift_encode(add_noise(plain, level, rng), 77), guesser, 77)


def scenario_plaintext_kind(guesser, rng):
    print("\n" + "=" * 64)
    print("SCENARIO 3: PLAINTEXT KIND")
    print("=" * 64)
    run_test("Python source, shift 13",
             shift_encode(python_source_bytes(rng, 2048), 13), guesser, 13)
    run_test("English, unshifted", english_bytes(rng, 2048), guesser, 0)
    run_test("English, shift 255 (i.e. -1)",
             shift_encode(english_bytes(rng, 2048), 255), guesser, 255)


def scenario_not_text(guesser, rng):
    print("\n" + "=" * 64)
    print("SCENARIO 4: CONTENT THAT IS NOT SHIFTED TEXT")
    print("=" * 64)
    for name in ["Uniform Random", "AES-CTR English", "Zlib English", "Zero Padding"]:
        data = get_source(name).gen_fn(rng, 4096)
        run_test(name, data, guesser, None)


def main():
    rng = np.random.default_rng(2024)
    for distance in ["cosine", "chi_square"]:
        print("\n" + "#" * 64)
        print(f"DISTANCE: {distance}")
        print("#" * 64)
        guesser = ShiftCipherGuesser(distance=distance)
        scenario_window_length(guesser, rng)
        scenario_noise(guesser, rng)
        scenario_plaintext_kind(guesser, rng)
        scenario_not_text(guesser, rng)

    n_pass = sum(1 for _, tag, *_ in results_log if tag == "PASS")
    n_fail = sum(1 for _, tag, *_ in results_log if tag == "FAIL")
    n_total = len(results_log)

    print("\n" + "=" * 64)
    print(f"SUMMARY: {n_pass}/{n_total} passed, {n_fail} failed")
    print("=" * 64)

    if n_fail:
        print("\nFailures:")
        for name, tag, expected, got in results_log:
            if tag == "FAIL":
                print(f"  {name}: expected '{expected}', got '{got}'")

    sys.exit(0 if n_fail == 0 else 1)


if __name__ == "__main__":
    main()
