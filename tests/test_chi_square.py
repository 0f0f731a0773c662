import pytest
import numpy as np
from scipy import stats
from hilbert_forensics import (
    ChiSquareClassifier, ChiSquareThresholds, ChiSquareBand, InvalidConfiguration, EmptyInput,
)
from tools.sources import english_bytes, python_source_bytes, get_source


@pytest.fixture
def classifier():
    return ChiSquareClassifier()


def test_random_bytes_band_random(classifier):
    rng = np.random.default_rng(0)
    r = classifier.classify(rng.integers(0, 256, 4096, dtype=np.uint8))
    assert r.band is ChiSquareBand.RANDOM, f"statistic {r.statistic:.1f}"
    assert r.dof == 255


def test_ciphertext_band_random(classifier):
    rng = np.random.default_rng(5)
    r = classifier.classify(get_source("AES-CTR English").gen_fn(rng, 4096))
    assert r.band is ChiSquareBand.RANDOM, f"statistic {r.statistic:.1f}"


@pytest.mark.parametrize("make", [english_bytes, python_source_bytes])
def test_text_band_structured(classifier, make):
    rng = np.random.default_rng(6)
    r = classifier.classify(make(rng, 4096))
    assert r.band is ChiSquareBand.STRUCTURED
    assert r.statistic / r.length > 2.0


def test_sampled_media_band_compressed_or_media(classifier):
    rng = np.random.default_rng(7)
    r = classifier.classify(get_source("Gaussian Media").gen_fn(rng, 4096))
    assert r.band is ChiSquareBand.COMPRESSED_OR_MEDIA, f"statistic {r.statistic:.1f}"


def test_compressed_is_not_structured(classifier):
    rng = np.random.default_rng(8)
    r = classifier.classify(get_source("Zlib English").gen_fn(rng, 4096))
    assert r.band in (ChiSquareBand.RANDOM, ChiSquareBand.COMPRESSED_OR_MEDIA)


def test_statistic_matches_pearson_formula(classifier):
    rng = np.random.default_rng(9)
    data = rng.integers(0, 64, 2048, dtype=np.uint8)
    counts = np.bincount(data, minlength=256)
    expected = len(data) / 256
    manual = float(np.sum((counts - expected) ** 2 / expected))
    r = classifier.classify(data)
    assert r.statistic == pytest.approx(manual)
    assert r.p_value == pytest.approx(stats.chi2.sf(manual, 255))


def test_short_window_insufficient_but_reported(classifier):
    r = classifier.classify(b"hello world, this is short")
    assert r.band is ChiSquareBand.INSUFFICIENT_SAMPLE
    assert r.low_confidence
    assert np.isfinite(r.statistic) and r.statistic > 0


def test_band_is_permutation_invariant(classifier):
    rng = np.random.default_rng(10)
    data = np.frombuffer(english_bytes(rng, 2048), dtype=np.uint8)
    a = classifier.classify(data)
    b = classifier.classify(rng.permutation(data))
    assert a.statistic == b.statistic
    assert a.band is b.band


def test_band_for_boundaries():
    t = ChiSquareThresholds()
    cutoff = t.random_cutoff
    assert cutoff == pytest.approx(stats.chi2.isf(0.001, 255))
    assert t.band_for(0.0, 1000) is ChiSquareBand.RANDOM
    assert t.band_for(cutoff, 1000) is ChiSquareBand.RANDOM
    assert t.band_for(cutoff + 1.0, 1000) is ChiSquareBand.COMPRESSED_OR_MEDIA
    assert t.band_for(2000.0, 1000) is ChiSquareBand.COMPRESSED_OR_MEDIA
    assert t.band_for(2000.1, 1000) is ChiSquareBand.STRUCTURED
    assert t.band_for(1e9, 255) is ChiSquareBand.INSUFFICIENT_SAMPLE


def test_custom_min_sample():
    rng = np.random.default_rng(11)
    clf = ChiSquareClassifier(ChiSquareThresholds(min_sample=16))
    assert clf.classify(english_bytes(rng, 100)).band is ChiSquareBand.STRUCTURED


@pytest.mark.parametrize("kwargs", [
    dict(random_pvalue=0.0),
    dict(random_pvalue=1.0),
    dict(structured_divergence=0.0),
    dict(min_sample=0),
])
def test_invalid_thresholds(kwargs):
    with pytest.raises(InvalidConfiguration):
        ChiSquareThresholds(**kwargs)


def test_empty_window_raises(classifier):
    with pytest.raises(EmptyInput):
        classifier.classify(b"")


def test_band_values_and_codes():
    assert ChiSquareBand.RANDOM == "random"
    assert [b.code for b in ChiSquareBand] == [0, 1, 2, 3]
    assert ChiSquareBand("compressed_or_media") is ChiSquareBand.COMPRESSED_OR_MEDIA
