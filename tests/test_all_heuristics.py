import pytest
import numpy as np
import inspect
import hilbert_forensics as hf
from hilbert_forensics import WindowHeuristic, EmptyInput


def get_all_heuristic_classes():
    """Find all concrete subclasses of WindowHeuristic in the module."""
    classes = []
    for name, obj in inspect.getmembers(hf):
        if inspect.isclass(obj) and issubclass(obj, WindowHeuristic) and obj is not WindowHeuristic:
            classes.append(obj)
    return classes


def test_defaults_are_discovered():
    names = {cls.__name__ for cls in get_all_heuristic_classes()}
    assert {"ChiSquareClassifier", "ShiftCipherGuesser"} <= names


@pytest.mark.parametrize("HeuristicClass", get_all_heuristic_classes())
def test_heuristic_contract(HeuristicClass):
    """
    Smoke test for all heuristics:
    - Instantiation with defaults
    - Properties (name, description, detects)
    - evaluate() on random, constant and tiny windows
    """
    try:
        h = HeuristicClass()
    except TypeError as e:
        pytest.fail(f"Could not instantiate {HeuristicClass.__name__} with default args: {e}")

    assert isinstance(h.name, str) and len(h.name) > 0
    assert isinstance(h.description, str)
    assert isinstance(h.detects, str)
    assert h.metadata()["class"] == HeuristicClass.__name__

    rng = np.random.default_rng(42)
    windows = [
        ("random", rng.integers(0, 256, 1024, dtype=np.uint8)),
        ("zeros", np.zeros(1024, dtype=np.uint8)),
        ("highs", np.full(1024, 255, dtype=np.uint8)),
        ("single", b"\x80"),
    ]
    for label, window in windows:
        try:
            result = h.evaluate(window)
        except Exception as e:
            pytest.fail(f"{h.name} crashed on {label}: {e}")
        assert result is not None
        assert isinstance(result.to_dict(), dict)


@pytest.mark.parametrize("HeuristicClass", get_all_heuristic_classes())
def test_heuristic_rejects_empty_window(HeuristicClass):
    with pytest.raises(EmptyInput):
        HeuristicClass().evaluate(b"")
