import pytest
import numpy as np
from hilbert_forensics import (
    HeuristicsEngine, EngineConfig, ChiSquareBand, as_byte_view, entropy_profile,
    InvalidConfiguration, EmptyInput, HeuristicsError,
)


@pytest.fixture(scope="module")
def engine():
    return HeuristicsEngine(EngineConfig(window_size=256)).add_default_heuristics()


@pytest.mark.parametrize("value", [0, 255])
def test_constant_signals(engine, value):
    """
    Constant runs (padding, erased flash) through the full engine.
    Expectation: entropy exactly 0, structured band, no crash.
    """
    data = np.full(2048, value, dtype=np.uint8)
    report = engine.analyze(data)
    assert all(w.entropy == 0.0 for w in report.windows)
    assert all(w.chi_square.band is ChiSquareBand.STRUCTURED for w in report.windows)
    assert report.transitions == ()
    assert report.byte_report.entropy == 0.0


def test_window_equal_to_length(engine):
    data = np.random.default_rng(40).integers(0, 256, 256, dtype=np.uint8)
    report = engine.analyze(data)
    assert len(report.windows) == 1
    assert report.profile.skipped == ()


def test_too_short_for_one_window(engine):
    with pytest.raises(InvalidConfiguration):
        engine.analyze(b"\x01\x02\x03")
    short = HeuristicsEngine(EngineConfig(window_size=256, partial_window="include"))
    report = short.add_default_heuristics().analyze(b"\x01\x02\x03")
    assert report.windows[0].chi_square.band is ChiSquareBand.INSUFFICIENT_SAMPLE


def test_empty_input(engine):
    with pytest.raises(EmptyInput):
        engine.analyze(b"")


def test_errors_are_value_errors():
    assert issubclass(InvalidConfiguration, HeuristicsError)
    assert issubclass(EmptyInput, ValueError)


def test_byte_view_accepts_common_inputs():
    expected = np.array([1, 2, 250], dtype=np.uint8)
    for data in [b"\x01\x02\xfa", bytearray(b"\x01\x02\xfa"), memoryview(b"\x01\x02\xfa"),
                 [1, 2, 250], np.array([1, 2, 250]), np.array([[1, 2, 250]], dtype=np.uint8)]:
        view = as_byte_view(data)
        assert view.dtype == np.uint8
        assert np.array_equal(view, expected)
        assert not view.flags.writeable


def test_byte_view_rejects_out_of_range():
    with pytest.raises(InvalidConfiguration):
        as_byte_view([0, 256])
    with pytest.raises(InvalidConfiguration):
        as_byte_view(np.array([-1, 5]))


def test_caller_array_stays_writeable():
    data = np.zeros(512, dtype=np.uint8)
    entropy_profile(data, window_size=128)
    assert data.flags.writeable
    data[0] = 1


def test_input_not_modified(engine):
    rng = np.random.default_rng(41)
    data = bytearray(rng.integers(0, 256, 1024, dtype=np.uint8).tobytes())
    before = bytes(data)
    engine.analyze(data)
    list(engine.tiles(data))
    assert bytes(data) == before
