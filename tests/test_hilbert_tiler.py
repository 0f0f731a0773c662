import pytest
import numpy as np
from hilbert_forensics import (
    HilbertCurve, ZOrderCurve, get_curve, tile, untile, TileSequence,
    InvalidConfiguration, EmptyInput,
)

SIDES = [1, 2, 4, 8, 16, 64]


@pytest.mark.parametrize("side", SIDES)
@pytest.mark.parametrize("Curve", [HilbertCurve, ZOrderCurve])
def test_curve_is_bijection(Curve, side):
    curve = Curve(side)
    d = np.arange(curve.n_cells)
    xs, ys = curve.d2xy_array(d)
    assert xs.min() >= 0 and xs.max() < side
    assert ys.min() >= 0 and ys.max() < side
    cells = set(zip(xs.tolist(), ys.tolist()))
    assert len(cells) == curve.n_cells, f"{curve.name} side {side}: cells repeated"
    assert np.array_equal(curve.xy2d_array(xs, ys), d)


@pytest.mark.parametrize("side", [2, 4, 16, 64])
def test_hilbert_consecutive_offsets_are_adjacent(side):
    xs, ys = HilbertCurve(side).coordinates()
    steps = np.abs(np.diff(xs)) + np.abs(np.diff(ys))
    assert np.all(steps == 1)


def test_hilbert_more_local_than_zorder():
    hx, hy = HilbertCurve(64).coordinates()
    zx, zy = ZOrderCurve(64).coordinates()
    h_step = np.mean(np.abs(np.diff(hx)) + np.abs(np.diff(hy)))
    z_step = np.mean(np.abs(np.diff(zx)) + np.abs(np.diff(zy)))
    assert h_step == 1.0
    assert z_step > h_step


def test_hilbert_order_one_shape():
    curve = HilbertCurve(2)
    assert [curve.d2xy(d) for d in range(4)] == [(0, 0), (0, 1), (1, 1), (1, 0)]
    assert [curve.xy2d(x, y) for x, y in [(0, 0), (0, 1), (1, 1), (1, 0)]] == [0, 1, 2, 3]


def test_zorder_interleaves_bits():
    curve = ZOrderCurve(4)
    assert [curve.d2xy(d) for d in range(4)] == [(0, 0), (1, 0), (0, 1), (1, 1)]
    assert curve.d2xy(15) == (3, 3)


def test_index_grid_inverts_coordinates():
    curve = HilbertCurve(16)
    grid = curve.index_grid()
    xs, ys = curve.coordinates()
    assert np.array_equal(grid[ys, xs], np.arange(256))


@pytest.mark.parametrize("side", [0, 3, 6, 100, -4])
def test_non_power_of_two_side_rejected(side):
    with pytest.raises(InvalidConfiguration):
        HilbertCurve(side)
    with pytest.raises(InvalidConfiguration):
        tile(b"abc", side_length=side)


def test_out_of_range_coordinates_raise():
    curve = HilbertCurve(4)
    with pytest.raises(IndexError):
        curve.d2xy(16)
    with pytest.raises(IndexError):
        curve.xy2d(4, 0)


def test_get_curve_is_shared():
    assert get_curve("hilbert", 8) is get_curve("hilbert", 8)
    with pytest.raises(InvalidConfiguration):
        get_curve("peano", 8)


def test_tile_count_and_padding():
    data = np.arange(1000) % 256
    tiles = tile(data, side_length=16)
    assert len(tiles) == 4
    last = tiles[-1]
    assert last.n_valid == 1000 - 3 * 256
    assert last.n_padding == 24
    assert int(last.valid.sum()) == last.n_valid
    assert all(t.n_padding == 0 for t in list(tiles)[:-1])


def test_single_byte_tile():
    tiles = tile(b"\x07", side_length=4)
    assert len(tiles) == 1
    t = tiles[0]
    assert t.n_padding == 15
    assert t.values[0, 0] == 7 and t.valid[0, 0]
    assert int(t.valid.sum()) == 1


@pytest.mark.parametrize("side", [2, 8, 32])
def test_one_short_of_full_tile_pads_one_cell(side):
    tiles = tile(bytes(side * side - 1), side_length=side)
    assert len(tiles) == 1
    assert tiles[0].n_padding == 1
    assert int((~tiles[0].valid).sum()) == 1


def test_close_offsets_map_to_close_cells():
    """Offsets 1..8 apart land much closer on the grid than random pairs."""
    curve = HilbertCurve(256)
    xs, ys = curve.coordinates()
    rng = np.random.default_rng(22)
    a = rng.integers(0, curve.n_cells - 8, 5000)
    near = a + rng.integers(1, 9, 5000)
    far = rng.integers(0, curve.n_cells, 5000)
    near_dist = np.hypot(xs[a] - xs[near], ys[a] - ys[near]).mean()
    far_dist = np.hypot(xs[a] - xs[far], ys[a] - ys[far]).mean()
    assert near_dist < 3.0
    assert far_dist > 20 * near_dist


def test_exact_multiple_has_no_padding():
    tiles = tile(bytes(512), side_length=16)
    assert len(tiles) == 2
    assert all(t.n_padding == 0 and t.valid.all() for t in tiles)


@pytest.mark.parametrize("curve", ["hilbert", "zorder"])
def test_every_offset_lands_on_its_curve_cell(curve):
    rng = np.random.default_rng(20)
    data = rng.integers(0, 256, 3000, dtype=np.uint8)
    tiles = tile(data, side_length=32, curve=curve)
    for t in tiles:
        xs, ys = t.curve.coordinates()
        n = t.n_valid
        assert np.array_equal(t.values[ys[:n], xs[:n]], data[t.source_offset:t.source_offset + n])
        assert not t.valid[ys[n:], xs[n:]].any()
    for offset in [0, 1, 1023, 1024, 2999]:
        t = tiles[offset // 1024]
        x, y = t.coordinate(offset)
        assert t.values[y, x] == data[offset]
        assert t.offset_at(x, y) == offset


def test_annotation_aligned_with_values():
    data = np.arange(700) % 256
    annotation = np.arange(700, dtype=np.float64) * 0.5
    tiles = tile(data, side_length=16, annotation=annotation)
    for t in tiles:
        for y in range(16):
            for x in range(16):
                if t.valid[y, x]:
                    assert t.annotation[y, x] == annotation[t.offset_at(x, y)]
                else:
                    assert np.isnan(t.annotation[y, x])


def test_annotation_length_must_match():
    with pytest.raises(InvalidConfiguration):
        tile(bytes(100), side_length=8, annotation=np.zeros(99))


def test_tile_sequence_is_restartable():
    rng = np.random.default_rng(21)
    tiles = tile(rng.integers(0, 256, 5000, dtype=np.uint8), side_length=32)
    first = [t.values.copy() for t in tiles]
    second = [t.values.copy() for t in tiles]
    assert len(first) == len(second) == len(tiles)
    assert all(np.array_equal(a, b) for a, b in zip(first, second))
    assert np.array_equal(tiles[-1].values, first[-1])
    assert [t.index for t in tiles[1:3]] == [1, 2]
    with pytest.raises(IndexError):
        tiles[len(tiles)]


def test_tiles_are_read_only():
    t = tile(bytes(64), side_length=8)[0]
    with pytest.raises(ValueError):
        t.values[0, 0] = 1


def test_masked_view_hides_padding():
    t = tile(bytes(range(50)), side_length=8)[0]
    masked = t.as_masked()
    assert int(masked.mask.sum()) == t.n_padding == 14
    assert masked.sum() == sum(range(50))


@pytest.mark.parametrize("curve", ["hilbert", "zorder"])
@pytest.mark.parametrize("n", [1, 63, 64, 65, 1000])
def test_untile_restores_bytes(curve, n):
    rng = np.random.default_rng(n)
    data = rng.integers(0, 256, n, dtype=np.uint8).tobytes()
    assert untile(tile(data, side_length=8, curve=curve)) == data


def test_untile_rejects_gaps_and_mixed_grids():
    tiles = list(tile(bytes(300), side_length=8))
    with pytest.raises(InvalidConfiguration):
        untile([tiles[0], tiles[2]])
    other = tile(bytes(300), side_length=8, curve="zorder")[1]
    with pytest.raises(InvalidConfiguration):
        untile([tiles[0], other])
    with pytest.raises(EmptyInput):
        untile([])


def test_untile_rejects_missing_first_or_last_tile():
    data = bytes(range(256)) * 2 + b"tail"
    tiles = list(tile(data, side_length=8))
    assert len(tiles) == 9
    assert all(t.sequence_length == len(data) for t in tiles)
    with pytest.raises(InvalidConfiguration):
        untile(tiles[1:])
    with pytest.raises(InvalidConfiguration):
        untile(tiles[:-1])
    assert untile(tiles) == data


def test_untile_rejects_tiles_from_different_sources():
    a = list(tile(bytes(100), side_length=8))
    b = list(tile(bytes(200), side_length=8))
    with pytest.raises(InvalidConfiguration):
        untile([a[0], b[1]])


def test_alignment_check():
    a = tile(bytes(10), side_length=8)[0]
    b = tile(bytes(10), side_length=8)[0]
    c = tile(bytes(10), side_length=16)[0]
    assert a.is_aligned_with(b)
    assert not a.is_aligned_with(c)


def test_empty_sequence_rejected():
    with pytest.raises(EmptyInput):
        TileSequence(b"", side_length=8)


def test_input_not_modified():
    data = bytearray(b"abcdefgh" * 40)
    before = bytes(data)
    list(tile(data, side_length=8))
    assert bytes(data) == before
