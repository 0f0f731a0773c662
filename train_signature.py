#!/usr/bin/env python3
"""
Training Engine for Hilbert Forensics.
Computes and saves byte-frequency signatures for content categories.

Usage:
    python train_signature.py                        # all signature sources
    python train_signature.py --name "Latin Text" corpus/*.txt
"""

import argparse
import sys
import numpy as np
from hilbert_forensics import Signature, SignatureLibrary, HeuristicsError
from tools.sources import get_sources, seed_adapter

DEFAULT_TRIALS = 20
DEFAULT_SIZE = 8192
DEFAULT_DIR = "signatures"


def train_system_signature(name, generator_fn, n_trials=DEFAULT_TRIALS, size=DEFAULT_SIZE,
                           directory=DEFAULT_DIR, description=""):
    """
    Train a signature for a content category.

    generator_fn: (trial_seed, size) -> np.ndarray (uint8)
    """
    print(f"Training signature for '{name}'...")
    chunks = []
    for trial in range(n_trials):
        chunks.append(generator_fn(trial, size))
    sig = Signature.from_samples(name, chunks, description)
    return save_signature(sig, directory)


def train_from_files(name, paths, chunk_size=DEFAULT_SIZE, directory=DEFAULT_DIR,
                     description=""):
    """Train from real files, one sample per ``chunk_size`` bytes."""
    print(f"Training signature for '{name}' from {len(paths)} file(s)...")
    chunks = []
    for path in paths:
        with open(path, "rb") as f:
            data = np.frombuffer(f.read(), dtype=np.uint8)
        for start in range(0, len(data), chunk_size):
            chunks.append(data[start:start + chunk_size])
    sig = Signature.from_samples(name, chunks, description)
    return save_signature(sig, directory)


def save_signature(sig, directory=DEFAULT_DIR):
    filename = SignatureLibrary([sig]).save(directory)[0]
    print(f"  {sig.n_samples} samples. Saved to {filename}")
    return filename


def main():
    parser = argparse.ArgumentParser(description="Train byte-frequency signatures.")
    parser.add_argument("files", nargs="*", help="Training files (requires --name)")
    parser.add_argument("--name", help="Signature name when training from files")
    parser.add_argument("--description", default="", help="Signature description")
    parser.add_argument("--out", default=DEFAULT_DIR,
                        help=f"Signature directory (default: {DEFAULT_DIR})")
    parser.add_argument("--trials", type=int, default=DEFAULT_TRIALS)
    parser.add_argument("--size", type=int, default=DEFAULT_SIZE)
    args = parser.parse_args()

    try:
        if args.files:
            if not args.name:
                parser.error("--name is required when training from files")
            train_from_files(args.name, args.files, args.size, args.out, args.description)
            return
        for s in get_sources(signature=True):
            train_system_signature(s.name, seed_adapter(s.gen_fn), args.trials, args.size,
                                   args.out, s.description)
    except (HeuristicsError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
