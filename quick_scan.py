#!/usr/bin/env python3
"""
CLI tool to scan a file: entropy profile, chi-square bands, shift-cipher
guesses and (optionally) Hilbert tiles.

Usage:
    python quick_scan.py suspect.bin
    python quick_scan.py suspect.bin --window 512 --stride 256 --verbose
    python quick_scan.py suspect.bin --config scan.json --json report.json
    python quick_scan.py suspect.bin --tiles out/ --png --annotate entropy
    python quick_scan.py suspect.bin --plot profile.png
"""

import argparse
import json
import os
import sys
import numpy as np
from hilbert_forensics import HeuristicsEngine, EngineConfig, HeuristicsError


def build_config(args):
    settings = {}
    if args.config:
        with open(args.config) as f:
            settings.update(json.load(f))
    overrides = {
        "window_size": args.window,
        "stride": args.stride,
        "partial_window": args.partial,
        "side_length": args.side,
        "curve": args.curve,
        "signature_library_reference": args.signatures,
        "distance": args.distance,
        "n_workers": args.workers,
    }
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return EngineConfig.from_dict(settings)


def plot_profile(report, path):
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    profile = report.profile
    fig, ax = plt.subplots(figsize=(12, 3.5))
    ax.plot(profile.offsets, profile.values, drawstyle="steps-post", color="#2c3e50", lw=1)
    ax.fill_between(profile.offsets, profile.values, step="post", alpha=0.25, color="#3498db")
    for t in report.transitions:
        ax.axvline(t.offset, color="#e74c3c", lw=1, ls="--")
    ax.set_ylim(0, 8.05)
    ax.set_xlabel("Offset (bytes)")
    ax.set_ylabel("Entropy (bits/byte)")
    ax.set_title(f"{report.label}: {profile.window_size}-byte windows, stride {profile.stride}")
    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close(fig)


def main():
    parser = argparse.ArgumentParser(
        description="Scan binary data with entropy, chi-square and shift-cipher heuristics."
    )
    parser.add_argument("filename", help="File to scan")
    parser.add_argument("--config", help="JSON file with EngineConfig fields")
    parser.add_argument("--window", type=int, help="Window size in bytes (default: 1024)")
    parser.add_argument("--stride", type=int, help="Stride in bytes (default: window size)")
    parser.add_argument("--partial", choices=["include", "exclude"],
                        help="Tail window policy (default: exclude)")
    parser.add_argument("--signatures", help="Signature directory (default: built-in library)")
    parser.add_argument("--distance", choices=["cosine", "chi_square"],
                        help="Distance for shift scoring (default: cosine)")
    parser.add_argument("--workers", type=int, help="Worker processes (default: 1)")
    parser.add_argument("--min-confidence", type=float, default=0.5,
                        help="Confidence needed to report a shift (default: 0.5)")
    parser.add_argument("--verbose", action="store_true", help="Print every window")
    parser.add_argument("--json", help="Write the full report as JSON to this path")
    parser.add_argument("--plot", help="Save an entropy profile plot (PNG)")
    parser.add_argument("--tiles", help="Write tiles (.npz) to this directory")
    parser.add_argument("--png", action="store_true", help="Also render tiles as PNG")
    parser.add_argument("--side", type=int, help="Tile side length, power of two (default: 256)")
    parser.add_argument("--curve", choices=["hilbert", "zorder"], help="Tile curve (default: hilbert)")
    parser.add_argument("--annotate", choices=["entropy", "band"], help="Tile annotation layer")
    args = parser.parse_args()

    if not os.path.exists(args.filename):
        print(f"Error: File '{args.filename}' not found.", file=sys.stderr)
        sys.exit(1)

    with open(args.filename, "rb") as f:
        data = np.frombuffer(f.read(), dtype=np.uint8)

    try:
        config = build_config(args)
        if len(data) < config.chi_square_thresholds.min_sample:
            print("Warning: Data is very short. Chi-square bands will be low-confidence.",
                  file=sys.stderr)
        print(f"Scanning {args.filename} ({len(data)} bytes)...")
        engine = HeuristicsEngine(config).add_default_heuristics()
        report = engine.analyze(data, os.path.basename(args.filename))
    except (HeuristicsError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(report.summary(args.min_confidence))

    if args.verbose:
        print()
        print(f"  {'Offset':>10} {'Len':>6} {'Entropy':>8} {'Chi2':>10}  {'Label':<28} {'Conf':>5}")
        print(f"  {'─'*10} {'─'*6} {'─'*8} {'─'*10}  {'─'*28} {'─'*5}")
        for w in report.windows:
            chi = w.chi_square
            g = w.caesar
            print(f"  0x{w.window.offset:08x} {w.window.length:>6} {w.entropy:>8.3f} "
                  f"{chi.statistic:>10.1f}  {w.composite_label(args.min_confidence):<28} "
                  f"{g.confidence:>5.2f}")

    top = report.byte_report.top_transitions
    if top:
        print("\n  Most frequent byte transitions:")
        for key, freq in list(top.items())[:5]:
            print(f"    {key[:2]} -> {key[2:]}  {freq:.4f}")

    if args.json:
        with open(args.json, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        print(f"\nSaved {args.json}")

    if args.plot:
        plot_profile(report, args.plot)
        print(f"Saved {args.plot}")

    if args.tiles:
        from tools.tile_io import save_tiles
        tiles = engine.tiles(data, annotate=args.annotate, report=report)
        paths = save_tiles(tiles, args.tiles, png=args.png)
        print(f"Saved {len(paths)} tile(s) of {tiles.side_length}x{tiles.side_length} "
              f"to {args.tiles}/ (original length {len(data)})")
    print()


if __name__ == "__main__":
    main()
