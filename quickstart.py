#!/usr/bin/env python3
"""
Hilbert Forensics Quickstart - Run this to verify the engine and see examples.

Usage:
    pip install -e .
    python quickstart.py
"""

import numpy as np

print("=" * 70)
print("HILBERT FORENSICS - QUICKSTART")
print("=" * 70)

from hilbert_forensics import (
    HeuristicsEngine, EngineConfig, ChiSquareClassifier, ShiftCipherGuesser,
    entropy_profile, shift_encode, tile, untile
)
from tools.sources import get_source, english_bytes
print("\n[OK] Engine imported successfully")

rng = np.random.default_rng(42)
print("\n" + "-" * 70)
print("GENERATING TEST DATA")
print("-" * 70)

samples = []
for name in ["English Text", "Python Source", "Zlib English", "Gaussian Media",
             "Uniform Random", "AES-CTR English"]:
    data = get_source(name).gen_fn(rng, 4096)
    samples.append((name, data))
    print(f"  {name:<18} {len(data)} bytes")

# Chi-square bands
print("\n" + "-" * 70)
print("CHI-SQUARE BANDS")
print("-" * 70)

classifier = ChiSquareClassifier()
print("\n{:<20} | {:>9} | {:>10} | {:<20}".format("Data", "Entropy", "Chi2", "Band"))
print("-" * 68)
for name, data in samples:
    r = classifier.classify(data)
    h = entropy_profile(data, window_size=len(data))[0].entropy
    print("{:<20} | {:>9.3f} | {:>10.1f} | {:<20}".format(name, h, r.statistic, r.label))

# Shift-cipher guessing
print("\n" + "-" * 70)
print("SHIFT-CIPHER GUESSING")
print("-" * 70)

guesser = ShiftCipherGuesser()
plain = english_bytes(rng, 2048)
for shift in [0, 3, 13, 200]:
    g = guesser.guess(shift_encode(plain, shift))
    print(f"  true shift {shift:>3}: guessed {g.best_shift:>3} "
          f"({g.matched_signature}, confidence {g.confidence:.2f})")
noise = rng.integers(0, 256, 2048, dtype=np.uint8)
g = guesser.guess(noise)
print(f"  random bytes   : guessed {g.best_shift:>3} (confidence {g.confidence:.2f}, should be low)")

# Full scan of a carrier with an appended payload
print("\n" + "-" * 70)
print("ENTROPY TRANSITIONS (text carrier + appended ciphertext)")
print("-" * 70)

carrier = get_source("English Text").gen_fn(rng, 16384)
payload = get_source("AES-CTR English").gen_fn(rng, 8192)
blob = np.concatenate([carrier, payload])

engine = HeuristicsEngine(EngineConfig(window_size=1024)).add_default_heuristics()
report = engine.analyze(blob, "carrier+payload")
print(report.summary())

# Tiling round trip
print("\n" + "-" * 70)
print("HILBERT TILING")
print("-" * 70)

tiles = tile(blob, side_length=64)
print(f"  {len(blob)} bytes -> {len(tiles)} tiles of 64x64, "
      f"last tile padding: {tiles[-1].n_padding} cells")
assert untile(tiles) == blob.tobytes()
print("  untile() restored the original bytes")

print("\n" + "=" * 70)
print("NEXT STEPS")
print("=" * 70)
print("""
Scan a file:
    python quick_scan.py suspect.bin --tiles out/ --plot profile.png

Use the engine in your own code:
    from hilbert_forensics import HeuristicsEngine
    engine = HeuristicsEngine().add_default_heuristics()
    report = engine.analyze(open("suspect.bin", "rb").read())
""")

print("[OK] Quickstart complete!")
