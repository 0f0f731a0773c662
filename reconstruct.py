#!/usr/bin/env python3
"""
Restore a file from tiles written by quick_scan.py --tiles.

Usage:
    python reconstruct.py out/ restored.bin
    python reconstruct.py out/ restored.bin --expect-length 123456
"""

import argparse
import sys
from hilbert_forensics import untile, HeuristicsError
from tools.tile_io import load_tiles


def main():
    parser = argparse.ArgumentParser(description="Reassemble bytes from a directory of tiles.")
    parser.add_argument("tiles", help="Directory containing tile_*.npz files")
    parser.add_argument("output", help="Path to write the restored bytes")
    parser.add_argument("--expect-length", type=int,
                        help="Fail unless the restored file has exactly this many bytes")
    args = parser.parse_args()

    try:
        tiles = load_tiles(args.tiles)
        data = untile(tiles)
    except (HeuristicsError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.expect_length is not None and len(data) != args.expect_length:
        print(f"Error: restored {len(data)} bytes, expected {args.expect_length}",
              file=sys.stderr)
        sys.exit(1)

    with open(args.output, "wb") as f:
        f.write(data)
    print(f"Restored {len(data)} bytes from {len(tiles)} tile(s) to {args.output}")


if __name__ == "__main__":
    main()
