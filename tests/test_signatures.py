import json
import pytest
import numpy as np
from hilbert_forensics import Signature, SignatureLibrary, InvalidConfiguration, EmptyInput


def test_builtin_library():
    lib = SignatureLibrary.builtin()
    assert lib.names == ["english_text", "source_code"]
    assert lib.matrix.shape == (2, 256)
    assert np.allclose(lib.matrix.sum(axis=1), 1.0)
    assert not lib.matrix.flags.writeable
    english = lib.get("english_text")
    assert english.reference[ord(" ")] == english.reference.max()
    assert english.reference[ord("e")] > english.reference[ord("z")]


def test_reference_is_normalised_and_read_only():
    sig = Signature("flat", np.ones(256) * 3)
    assert np.allclose(sig.reference, 1 / 256)
    with pytest.raises(ValueError):
        sig.reference[0] = 1.0


@pytest.mark.parametrize("reference", [
    np.ones(255),
    np.zeros(256),
    np.r_[-1.0, np.ones(255)],
    np.r_[np.nan, np.ones(255)],
])
def test_invalid_reference_rejected(reference):
    with pytest.raises(InvalidConfiguration):
        Signature("bad", reference)


def test_from_samples_averages_normalised_histograms():
    sig = Signature.from_samples("ab", [b"aaaa", b"ab"])
    assert sig.n_samples == 2
    assert sig.reference[ord("a")] == pytest.approx(0.75)
    assert sig.reference[ord("b")] == pytest.approx(0.25)
    with pytest.raises(EmptyInput):
        Signature.from_samples("none", [b""])


def test_from_weights_accepts_chars_and_ints():
    sig = Signature.from_weights("w", {"a": 1.0, 0x62: 3.0})
    assert sig.reference[ord("a")] == pytest.approx(0.25)
    assert sig.reference[ord("b")] == pytest.approx(0.75)


def test_save_and_load_roundtrip(tmp_path):
    lib = SignatureLibrary.builtin()
    paths = lib.save(str(tmp_path))
    assert len(paths) == 2
    loaded = SignatureLibrary.load(str(tmp_path))
    assert sorted(loaded.names) == sorted(lib.names)
    for name in lib.names:
        assert np.allclose(loaded.get(name).reference, lib.get(name).reference)


def test_load_skips_bad_files_with_warning(tmp_path):
    SignatureLibrary.builtin().save(str(tmp_path))
    (tmp_path / "broken.json").write_text("{not json")
    (tmp_path / "short.json").write_text(json.dumps({"name": "short", "reference": [1, 2, 3]}))
    with pytest.warns(UserWarning, match="Failed to load"):
        lib = SignatureLibrary.load(str(tmp_path))
    assert sorted(lib.names) == ["english_text", "source_code"]


def test_load_missing_directory(tmp_path):
    with pytest.raises(InvalidConfiguration):
        SignatureLibrary.load(str(tmp_path / "nope"))


def test_duplicate_names_rejected():
    sig = Signature("x", np.ones(256))
    with pytest.raises(InvalidConfiguration):
        SignatureLibrary([sig, Signature("x", np.arange(256) + 1.0)])


def test_with_signature_replaces_by_name():
    lib = SignatureLibrary.builtin()
    flat = Signature("english_text", np.ones(256))
    updated = lib.with_signature(flat)
    assert len(updated) == 2
    assert np.allclose(updated.get("english_text").reference, 1 / 256)
    assert not np.allclose(lib.get("english_text").reference, 1 / 256)
    with pytest.raises(KeyError):
        lib.get("klingon")


def test_dict_roundtrip():
    sig = Signature.from_samples("t", [b"hello world"], "greeting")
    again = Signature.from_dict(json.loads(json.dumps(sig.to_dict())))
    assert again.name == "t" and again.description == "greeting" and again.n_samples == 1
    assert np.allclose(again.reference, sig.reference)
