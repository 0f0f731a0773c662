"""
Tile persistence and rendering.

PNG output is for looking at; ``.npz`` output keeps everything needed to put
the bytes back together (values, padding mask, offsets, curve), which is what
reconstruct.py reads.
"""

import os
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.colors import to_rgba

from hilbert_forensics import Tile, get_curve, EmptyInput, InvalidConfiguration

PADDING_COLOR = "#ff00ff"


def tile_rgba(tile, cmap="gray", padding_color=PADDING_COLOR, layer="values"):
    """RGBA image of a tile's byte values (or its annotation), padding in its own colour."""
    if layer == "values":
        grid = tile.values.astype(np.float64) / 255.0
    elif layer == "annotation":
        if tile.annotation is None:
            raise InvalidConfiguration(f"Tile {tile.index} has no annotation layer")
        ann = tile.annotation
        finite = ann[np.isfinite(ann)]
        lo, hi = (finite.min(), finite.max()) if finite.size else (0.0, 1.0)
        if hi - lo < 1e-15:
            hi = lo + 1.0
        grid = np.nan_to_num((ann - lo) / (hi - lo))
    else:
        raise InvalidConfiguration(f"Unknown layer '{layer}'. Use 'values' or 'annotation'.")
    rgba = matplotlib.colormaps[cmap](grid)
    rgba[~tile.valid] = to_rgba(padding_color)
    return rgba


def save_tile_png(tile, path, cmap="gray", padding_color=PADDING_COLOR, layer="values"):
    plt.imsave(path, tile_rgba(tile, cmap, padding_color, layer))
    return path


def save_tiles(tiles, directory, png=False, cmap="gray"):
    """Write each tile as ``tile_NNNNN.npz`` (and optionally ``.png``). Returns npz paths."""
    os.makedirs(directory, exist_ok=True)
    paths = []
    for t in tiles:
        stem = os.path.join(directory, f"tile_{t.index:05d}")
        arrays = dict(
            values=t.values,
            valid=t.valid,
            index=t.index,
            source_offset=t.source_offset,
            n_valid=t.n_valid,
            sequence_length=t.sequence_length,
            side_length=t.side_length,
            curve=t.curve.name,
        )
        if t.annotation is not None:
            arrays["annotation"] = t.annotation
        np.savez_compressed(stem + ".npz", **arrays)
        paths.append(stem + ".npz")
        if png:
            save_tile_png(t, stem + ".png", cmap=cmap)
    return paths


def load_tile(path):
    with np.load(path) as z:
        curve = get_curve(str(z["curve"]), int(z["side_length"]))
        values = z["values"].astype(np.uint8)
        valid = z["valid"].astype(bool)
        annotation = z["annotation"].astype(np.float64) if "annotation" in z.files else None
        index = int(z["index"])
        source_offset = int(z["source_offset"])
        n_valid = int(z["n_valid"])
        sequence_length = int(z["sequence_length"])
    if values.shape != (curve.side_length, curve.side_length) or valid.shape != values.shape:
        raise InvalidConfiguration(f"{path}: grid shape {values.shape} does not match side length")
    return Tile(index=index, source_offset=source_offset, n_valid=n_valid,
                sequence_length=sequence_length,
                values=values, valid=valid, curve=curve, annotation=annotation)


def load_tiles(directory):
    """All ``tile_*.npz`` files in a directory, ordered by tile index."""
    names = sorted(f for f in os.listdir(directory)
                   if f.startswith("tile_") and f.endswith(".npz"))
    if not names:
        raise EmptyInput(f"No tile_*.npz files in '{directory}'")
    tiles = [load_tile(os.path.join(directory, f)) for f in names]
    return sorted(tiles, key=lambda t: t.index)
