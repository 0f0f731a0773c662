"""
Hilbert Forensics - Statistical Heuristics & Tiling Engine

Works out what a byte stream really is (plaintext, source code, compressed
media, random/encrypted data) from its statistics alone, without trusting file
extensions, and lays byte streams out on fixed-size 2D grids so downstream
pattern-recognition consumers always see the same tensor shape.

AVAILABLE COMPONENTS:

  Statistics:
    - EntropyProfiler: rolling Shannon entropy over fixed windows ("heatmap"),
      with find_transitions() to localise abrupt boundaries (appended payloads)
    - ChiSquareClassifier: goodness-of-fit of a window against uniform bytes,
      banded into structured / compressed_or_media / random
    - ShiftCipherGuesser: exhaustive single-byte additive shift search, every
      candidate decoding scored against a SignatureLibrary

  Reference data:
    - Signature, SignatureLibrary: byte-frequency profiles (english_text,
      source_code built in; more can be trained and loaded from JSON)

  Tiling:
    - HilbertCurve, ZOrderCurve: bidirectional offset <-> (x, y) transforms
    - tile(): lazy, restartable sequence of fixed-size Tiles with a padding
      mask and an optional, coordinate-aligned annotation layer
    - untile(): restore the original bytes from a run of tiles

  Orchestration:
    - HeuristicsEngine: profile -> per-window heuristics -> ScanReport
    - byte_report(): whole-file entropy, byte frequencies, top bigram transitions

Usage:
    from hilbert_forensics import HeuristicsEngine, EngineConfig

    engine = HeuristicsEngine(EngineConfig(window_size=1024)).add_default_heuristics()
    report = engine.analyze(data, "suspect.bin")
    print(report.summary())

    # Individual components
    from hilbert_forensics import entropy_profile, ChiSquareClassifier, ShiftCipherGuesser
    profile = entropy_profile(data, window_size=512, stride=256)
    band = ChiSquareClassifier().classify(data[:4096]).band
    guess = ShiftCipherGuesser().guess(ciphertext)
    print(guess.best_shift, guess.confidence, guess.matched_signature)

    # Tiles (256 x 256 Hilbert grids, entropy annotation layer)
    for t in engine.tiles(data, annotate="entropy"):
        grid, mask = t.values, t.valid
"""

import json
import math
import multiprocessing
import os
import warnings
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field, asdict
from enum import Enum
from functools import lru_cache
from typing import List, Dict, Any, Optional, Tuple, Union, Iterator, Sequence

import numpy as np
from scipy import stats as sp_stats


ALPHABET_SIZE = 256
MAX_ENTROPY = math.log2(ALPHABET_SIZE)
DEGREES_OF_FREEDOM = ALPHABET_SIZE - 1

PARTIAL_INCLUDE = "include"
PARTIAL_EXCLUDE = "exclude"
PARTIAL_POLICIES = (PARTIAL_INCLUDE, PARTIAL_EXCLUDE)


# =============================================================================
# ERRORS
# =============================================================================

class HeuristicsError(ValueError):
    """Base class for every error the engine raises."""


class InvalidConfiguration(HeuristicsError):
    """Rejected before any computation: bad sizes, unknown modes, empty library."""


class EmptyInput(HeuristicsError):
    """A window or tile request that contains no bytes."""


# =============================================================================
# BYTE VIEWS & SHARED STATISTICS
# =============================================================================

def as_byte_view(data) -> np.ndarray:
    """Return a read-only 1-D uint8 view over ``data``.

    Accepts bytes, bytearray, memoryview, numpy arrays and sequences of ints.
    Buffers are wrapped without copying; the caller's object is never
    modified.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        view = np.frombuffer(data, dtype=np.uint8)
    else:
        arr = np.asarray(data)
        if arr.dtype != np.uint8:
            if arr.size and (arr.min() < 0 or arr.max() > 255):
                raise InvalidConfiguration("Values must lie in [0, 255] to be read as bytes")
            arr = arr.astype(np.uint8)
        view = arr.reshape(-1).view()
    view.flags.writeable = False
    return view


def byte_histogram(view: np.ndarray) -> np.ndarray:
    """Counts of each of the 256 byte values."""
    return np.bincount(view, minlength=ALPHABET_SIZE)


def shannon_entropy(counts: np.ndarray) -> float:
    """Shannon entropy in bits per byte of a 256-bucket histogram.

    Only nonzero buckets contribute. The result lies in [0, 8]: exactly 0
    for a single repeated value and exactly 8 when every byte value is
    equally represented.
    """
    counts = np.asarray(counts)
    total = counts.sum()
    if total <= 0:
        raise EmptyInput("Cannot compute the entropy of an empty window")
    p = counts[counts > 0] / total
    h = 0.0 - float(np.sum(p * np.log2(p)))
    return min(max(h, 0.0), MAX_ENTROPY)


def _is_power_of_two(n) -> bool:
    return isinstance(n, (int, np.integer)) and n >= 1 and (n & (n - 1)) == 0


def _check_positive_int(name, value):
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")


def _check_window_params(window_size, stride, partial_window):
    _check_positive_int("window_size", window_size)
    _check_positive_int("stride", stride)
    if partial_window not in PARTIAL_POLICIES:
        raise InvalidConfiguration(
            f"Unknown partial_window '{partial_window}'. Use one of: {list(PARTIAL_POLICIES)}")


# =============================================================================
# WINDOWS
# =============================================================================

@dataclass(frozen=True)
class Window:
    """A sub-range ``[offset, offset + length)`` of a byte sequence."""
    offset: int
    length: int

    def __post_init__(self):
        if self.offset < 0:
            raise InvalidConfiguration(f"Window offset must be >= 0, got {self.offset}")
        if self.length <= 0:
            raise InvalidConfiguration(f"Window length must be > 0, got {self.length}")

    @property
    def end(self) -> int:
        return self.offset + self.length

    def check_within(self, sequence_length: int) -> None:
        if self.end > sequence_length:
            raise InvalidConfiguration(
                f"Window [{self.offset}, {self.end}) exceeds sequence length {sequence_length}")

    def slice(self, view: np.ndarray) -> np.ndarray:
        self.check_within(len(view))
        return view[self.offset:self.end]


def plan_windows(sequence_length: int, window_size: int, stride: Optional[int] = None,
                 partial_window: str = PARTIAL_EXCLUDE) -> Tuple[List[Window], List[Window]]:
    """
    Lay out analysis windows over a sequence.

    Full windows start at ``0, stride, 2*stride, ...`` while they fit. If the
    tail is not covered, ``partial_window='include'`` adds one shorter window
    at the next stride position; ``'exclude'`` leaves the tail out.

    Parameters
    ----------
    sequence_length : int
    window_size : int, bytes per window
    stride : int or None, distance between window starts (default: window_size)
    partial_window : 'include' or 'exclude'

    Returns
    -------
    (windows, skipped) : lists of Window, both ordered by offset. ``skipped``
    holds every byte range no window covers (gaps when stride > window_size,
    and an excluded tail).
    """
    stride = window_size if stride is None else stride
    _check_window_params(window_size, stride, partial_window)
    if sequence_length <= 0:
        raise EmptyInput("Cannot lay out windows over an empty sequence")
    if window_size > sequence_length and partial_window == PARTIAL_EXCLUDE:
        raise InvalidConfiguration(
            f"window_size {window_size} exceeds sequence length {sequence_length} "
            f"and partial_window='exclude' leaves nothing to analyse")

    windows: List[Window] = []
    skipped: List[Window] = []
    covered = 0
    offset = 0
    while offset + window_size <= sequence_length:
        if offset > covered:
            skipped.append(Window(covered, offset - covered))
        windows.append(Window(offset, window_size))
        covered = offset + window_size
        offset += stride

    if covered < sequence_length and partial_window == PARTIAL_INCLUDE and offset < sequence_length:
        if offset > covered:
            skipped.append(Window(covered, offset - covered))
        windows.append(Window(offset, sequence_length - offset))
        covered = sequence_length
    if covered < sequence_length:
        skipped.append(Window(covered, sequence_length - covered))
    return windows, skipped


def annotate_windows(sequence_length: int, windows: Sequence[Window], values: Sequence[float],
                     fill: float = np.nan) -> np.ndarray:
    """Spread one value per window over the bytes it covers.

    Where windows overlap, the later window wins. Bytes no window covers keep
    ``fill``. The result can be handed to tile() as an annotation layer.
    """
    if len(windows) != len(values):
        raise InvalidConfiguration(
            f"Got {len(values)} values for {len(windows)} windows")
    out = np.full(sequence_length, fill, dtype=np.float64)
    for w, v in zip(windows, values):
        w.check_within(sequence_length)
        out[w.offset:w.end] = v
    return out


# =============================================================================
# ENTROPY PROFILER
# =============================================================================

@dataclass(frozen=True)
class EntropySample:
    offset: int
    length: int
    entropy: float

    @property
    def window(self) -> Window:
        return Window(self.offset, self.length)


@dataclass(frozen=True)
class Transition:
    """An abrupt entropy change between two consecutive profile samples."""
    offset: int
    before: float
    after: float

    @property
    def delta(self) -> float:
        return self.after - self.before

    @property
    def kind(self) -> str:
        return "rise" if self.delta > 0 else "fall"


@dataclass(frozen=True)
class EntropyProfile:
    """Ordered (offset, entropy) samples, one per window step."""
    samples: Tuple[EntropySample, ...]
    sequence_length: int
    window_size: int
    stride: int
    partial_window: str
    skipped: Tuple[Window, ...] = ()

    def __len__(self):
        return len(self.samples)

    def __iter__(self) -> Iterator[EntropySample]:
        return iter(self.samples)

    def __getitem__(self, i):
        return self.samples[i]

    @property
    def offsets(self) -> np.ndarray:
        return np.array([s.offset for s in self.samples], dtype=np.int64)

    @property
    def values(self) -> np.ndarray:
        return np.array([s.entropy for s in self.samples], dtype=np.float64)

    def windows(self) -> List[Window]:
        return [s.window for s in self.samples]

    def per_offset(self, fill: float = np.nan) -> np.ndarray:
        """Entropy of the covering window for every byte (``fill`` where skipped)."""
        return annotate_windows(self.sequence_length, self.windows(),
                                [s.entropy for s in self.samples], fill=fill)

    def transitions(self, min_delta: float = 1.5) -> List[Transition]:
        return find_transitions(self, min_delta)

    def summary(self) -> str:
        vals = self.values
        lines = [f"Entropy profile: {len(self)} windows of {self.window_size} bytes "
                 f"(stride {self.stride}, partial={self.partial_window})"]
        if len(vals):
            lines.append(f"  min={vals.min():.3f}  mean={vals.mean():.3f}  max={vals.max():.3f}")
        if self.skipped:
            total = sum(w.length for w in self.skipped)
            lines.append(f"  skipped {total} bytes in {len(self.skipped)} region(s)")
        return "\n".join(lines)


class EntropyProfiler:
    """
    Rolling Shannon entropy over a byte sequence.

    Small fixed windows trade resolution for sensitivity to transitions: the
    point of the profile is to localise boundaries inside a file (a payload
    appended to a carrier, an encrypted blob inside a document), not to
    summarise the whole file with one number.

    Windows shorter than ``window_size`` (the 'include' tail) bias entropy
    low, since fewer samples can populate fewer buckets.
    """

    def __init__(self, window_size: int = 1024, stride: Optional[int] = None,
                 partial_window: str = PARTIAL_EXCLUDE):
        stride = window_size if stride is None else stride
        _check_window_params(window_size, stride, partial_window)
        self.window_size = window_size
        self.stride = stride
        self.partial_window = partial_window

    def profile(self, sequence) -> EntropyProfile:
        view = as_byte_view(sequence)
        windows, skipped = plan_windows(len(view), self.window_size, self.stride,
                                        self.partial_window)
        if self.stride > self.window_size and skipped:
            gap_bytes = sum(w.length for w in skipped)
            warnings.warn(
                f"stride {self.stride} > window_size {self.window_size}: {gap_bytes} bytes in "
                f"{len(skipped)} region(s) are not profiled (see profile.skipped)")

        samples = tuple(
            EntropySample(w.offset, w.length, shannon_entropy(byte_histogram(w.slice(view))))
            for w in windows
        )
        return EntropyProfile(
            samples=samples,
            sequence_length=len(view),
            window_size=self.window_size,
            stride=self.stride,
            partial_window=self.partial_window,
            skipped=tuple(skipped),
        )


def entropy_profile(sequence, window_size: int = 1024, stride: Optional[int] = None,
                    partial_window: str = PARTIAL_EXCLUDE) -> EntropyProfile:
    """Functional form of EntropyProfiler(...).profile(sequence)."""
    return EntropyProfiler(window_size, stride, partial_window).profile(sequence)


def find_transitions(profile: EntropyProfile, min_delta: float = 1.5) -> List[Transition]:
    """
    Consecutive samples whose entropy differs by at least ``min_delta`` bits.

    The transition is reported at the offset of the later sample, i.e. the
    first window on the far side of the boundary.
    """
    if min_delta <= 0:
        raise InvalidConfiguration(f"min_delta must be > 0, got {min_delta}")
    vals = profile.values
    if len(vals) < 2:
        return []
    jumps = np.nonzero(np.abs(np.diff(vals)) >= min_delta)[0]
    return [Transition(profile.samples[i + 1].offset, float(vals[i]), float(vals[i + 1]))
            for i in jumps]


# =============================================================================
# WINDOW HEURISTICS (BASE CLASS)
# =============================================================================

class WindowHeuristic(ABC):
    """Base class for tests that run on a single window of bytes."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this heuristic."""
        pass

    @property
    def description(self) -> str:
        return ""

    @property
    def detects(self) -> str:
        """Short phrase: what this heuristic reveals."""
        return ""

    @abstractmethod
    def evaluate(self, window):
        """Run the heuristic on one window and return its result value."""
        pass

    def validate_window(self, window) -> np.ndarray:
        view = as_byte_view(window)
        if len(view) == 0:
            raise EmptyInput(f"{self.name}: window is empty")
        return view

    def metadata(self) -> dict:
        return {
            "class": type(self).__name__,
            "name": self.name,
            "description": self.description,
            "detects": self.detects,
        }


# =============================================================================
# CHI-SQUARE CLASSIFIER
# =============================================================================

class ChiSquareBand(str, Enum):
    STRUCTURED = "structured"
    COMPRESSED_OR_MEDIA = "compressed_or_media"
    RANDOM = "random"
    INSUFFICIENT_SAMPLE = "insufficient_sample"

    @property
    def code(self) -> int:
        """Small integer label, stable across runs (for annotation layers)."""
        return list(ChiSquareBand).index(self)


@dataclass(frozen=True)
class ChiSquareThresholds:
    """
    Band boundaries for the chi-square statistic.

    - random: statistic at or below the upper ``random_pvalue`` quantile of
      chi2(255), i.e. indistinguishable from uniform bytes
    - compressed_or_media: non-uniform, but the per-byte divergence
      ``statistic / length`` is at most ``structured_divergence``
    - structured: everything further from uniform (text, code, tables)

    ``statistic / length`` estimates the chi-square divergence of the byte
    distribution from uniform and stays put as windows grow, while the
    statistic itself grows linearly with length; that is why the second
    boundary scales with the window length.
    """
    random_pvalue: float = 0.001
    structured_divergence: float = 2.0
    min_sample: int = 256

    def __post_init__(self):
        if not 0.0 < self.random_pvalue < 1.0:
            raise InvalidConfiguration(f"random_pvalue must be in (0, 1), got {self.random_pvalue}")
        if self.structured_divergence <= 0:
            raise InvalidConfiguration(
                f"structured_divergence must be > 0, got {self.structured_divergence}")
        _check_positive_int("min_sample", self.min_sample)

    @property
    def random_cutoff(self) -> float:
        return float(sp_stats.chi2.isf(self.random_pvalue, DEGREES_OF_FREEDOM))

    def band_for(self, statistic: float, length: int) -> ChiSquareBand:
        if length < self.min_sample:
            return ChiSquareBand.INSUFFICIENT_SAMPLE
        if statistic <= self.random_cutoff:
            return ChiSquareBand.RANDOM
        if statistic / length <= self.structured_divergence:
            return ChiSquareBand.COMPRESSED_OR_MEDIA
        return ChiSquareBand.STRUCTURED


@dataclass(frozen=True)
class ChiSquareResult:
    statistic: float
    band: ChiSquareBand
    length: int
    p_value: float
    dof: int = DEGREES_OF_FREEDOM

    @property
    def low_confidence(self) -> bool:
        return self.band is ChiSquareBand.INSUFFICIENT_SAMPLE

    @property
    def label(self) -> str:
        return self.band.value

    def to_dict(self) -> Dict[str, Any]:
        return {"statistic": self.statistic, "band": self.band.value,
                "length": self.length, "p_value": self.p_value, "dof": self.dof}


class ChiSquareClassifier(WindowHeuristic):
    """
    Pearson chi-square test of a window's byte histogram against uniform.

    Under the null hypothesis of random bytes each value is expected
    ``length / 256`` times. Windows shorter than ``thresholds.min_sample``
    have too few samples per bucket for the test to mean much; they get the
    ``insufficient_sample`` band, with the statistic still reported.
    """

    def __init__(self, thresholds: Optional[ChiSquareThresholds] = None):
        self.thresholds = thresholds if thresholds is not None else ChiSquareThresholds()

    @property
    def name(self) -> str:
        return "Chi-Square"

    @property
    def description(self) -> str:
        return ("Goodness-of-fit of the 256-bucket byte histogram against the uniform "
                "distribution, 255 degrees of freedom.")

    @property
    def detects(self) -> str:
        return "Randomness, compression, structure"

    def classify(self, window) -> ChiSquareResult:
        view = self.validate_window(window)
        counts = byte_histogram(view)
        statistic, p_value = sp_stats.chisquare(counts)
        statistic = float(statistic)
        return ChiSquareResult(
            statistic=statistic,
            band=self.thresholds.band_for(statistic, len(view)),
            length=len(view),
            p_value=float(p_value),
        )

    def evaluate(self, window) -> ChiSquareResult:
        return self.classify(window)


# =============================================================================
# SIGNATURE LIBRARY
# =============================================================================

# Relative letter frequencies of English prose (percent of letters).
_ENGLISH_LETTERS = {
    'e': 12.70, 't': 9.06, 'a': 8.17, 'o': 7.51, 'i': 6.97, 'n': 6.75, 's': 6.33,
    'h': 6.09, 'r': 5.99, 'd': 4.25, 'l': 4.03, 'c': 2.78, 'u': 2.76, 'm': 2.41,
    'w': 2.36, 'f': 2.23, 'g': 2.02, 'y': 1.97, 'p': 1.93, 'b': 1.29, 'v': 0.98,
    'k': 0.77, 'j': 0.15, 'x': 0.15, 'q': 0.10, 'z': 0.07,
}

# Identifiers and keywords shift the mix towards e/t/r/s/n/f/l/p/d.
_CODE_LETTERS = {
    'e': 11.0, 't': 8.5, 's': 7.0, 'i': 6.8, 'r': 6.5, 'a': 6.5, 'n': 6.0, 'o': 5.8,
    'l': 4.5, 'd': 3.8, 'c': 3.5, 'p': 3.2, 'f': 3.0, 'u': 3.0, 'm': 2.8, 'h': 2.2,
    'g': 1.8, 'b': 1.4, 'y': 1.2, 'x': 1.0, 'v': 1.0, 'k': 0.9, 'w': 0.9, 'j': 0.3,
    'q': 0.2, 'z': 0.2,
}


def _letter_weights(letters: Dict[str, float], lower_share: float, upper_share: float) -> Dict[str, float]:
    total = sum(letters.values())
    weights = {}
    for ch, f in letters.items():
        weights[ch] = lower_share * f / total
        weights[ch.upper()] = upper_share * f / total
    return weights


def _english_weights() -> Dict[str, float]:
    w = _letter_weights(_ENGLISH_LETTERS, 74.0, 3.0)
    w.update({
        ' ': 18.0, '\n': 0.6, ',': 1.0, '.': 0.9, "'": 0.25, '"': 0.2, '-': 0.15,
        ';': 0.04, ':': 0.04, '?': 0.05, '!': 0.04, '(': 0.02, ')': 0.02,
    })
    for d in "0123456789":
        w[d] = 0.03
    return w


def _source_code_weights() -> Dict[str, float]:
    w = _letter_weights(_CODE_LETTERS, 50.0, 4.0)
    w.update({
        ' ': 19.0, '\n': 3.5, '\t': 0.5, '_': 2.0, '(': 1.6, ')': 1.6, '=': 1.6,
        '.': 1.3, ',': 1.0, '"': 1.0, ':': 0.8, "'": 0.8, '[': 0.4, ']': 0.4,
        '{': 0.4, '}': 0.4, '-': 0.4, ';': 0.4, '#': 0.3, '/': 0.3, '*': 0.2,
        '+': 0.2, '>': 0.2, '<': 0.15, '!': 0.05, '&': 0.05, '|': 0.05, '%': 0.05,
        '\\': 0.05,
    })
    for d in "0123456789":
        w[d] = 0.15
    return w


@dataclass(frozen=True, eq=False)
class Signature:
    """A reference byte-frequency distribution for one content category."""
    name: str
    reference: np.ndarray
    description: str = ""
    n_samples: int = 0

    def __post_init__(self):
        ref = np.asarray(self.reference, dtype=np.float64).reshape(-1)
        if ref.shape != (ALPHABET_SIZE,):
            raise InvalidConfiguration(
                f"Signature '{self.name}' needs {ALPHABET_SIZE} frequencies, got {ref.size}")
        if np.any(ref < 0) or not np.all(np.isfinite(ref)) or ref.sum() <= 0:
            raise InvalidConfiguration(
                f"Signature '{self.name}' must be non-negative with a positive total")
        ref = ref / ref.sum()
        ref.flags.writeable = False
        object.__setattr__(self, "reference", ref)

    @classmethod
    def from_counts(cls, name: str, counts, description: str = "") -> 'Signature':
        return cls(name, np.asarray(counts, dtype=np.float64), description, n_samples=1)

    @classmethod
    def from_weights(cls, name: str, weights: Dict[Union[str, int], float],
                     description: str = "") -> 'Signature':
        """Build from ``{character or byte value: weight}``."""
        ref = np.zeros(ALPHABET_SIZE)
        for key, w in weights.items():
            ref[ord(key) if isinstance(key, str) else int(key)] += w
        return cls(name, ref, description)

    @classmethod
    def from_samples(cls, name: str, chunks, description: str = "") -> 'Signature':
        """Average the normalised byte histograms of training chunks."""
        profiles = []
        for chunk in chunks:
            view = as_byte_view(chunk)
            if len(view) == 0:
                continue
            profiles.append(byte_histogram(view) / len(view))
        if not profiles:
            raise EmptyInput(f"No non-empty training chunks for signature '{name}'")
        return cls(name, np.mean(profiles, axis=0), description, n_samples=len(profiles))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "n_samples": self.n_samples,
            "reference": self.reference.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Signature':
        return cls(data["name"], np.asarray(data["reference"], dtype=np.float64),
                   data.get("description", ""), int(data.get("n_samples", 0)))


class SignatureLibrary:
    """
    Read-only collection of signatures, shared by reference across guessers.

    ``matrix`` stacks the reference distributions (one row per signature) so
    a guesser can score every candidate decoding against all of them at once.
    """

    def __init__(self, signatures: Sequence[Signature] = ()):
        self._signatures = tuple(signatures)
        names = [s.name for s in self._signatures]
        dupes = sorted(n for n, c in Counter(names).items() if c > 1)
        if dupes:
            raise InvalidConfiguration(f"Duplicate signature names: {dupes}")
        if self._signatures:
            matrix = np.vstack([s.reference for s in self._signatures])
        else:
            matrix = np.zeros((0, ALPHABET_SIZE))
        matrix.flags.writeable = False
        self._matrix = matrix

    def __len__(self):
        return len(self._signatures)

    def __iter__(self) -> Iterator[Signature]:
        return iter(self._signatures)

    def __contains__(self, name) -> bool:
        return name in self.names

    @property
    def names(self) -> List[str]:
        return [s.name for s in self._signatures]

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix

    def get(self, name: str) -> Signature:
        for s in self._signatures:
            if s.name == name:
                return s
        raise KeyError(name)

    def with_signature(self, signature: Signature) -> 'SignatureLibrary':
        """A new library with ``signature`` added (replacing one of the same name)."""
        kept = [s for s in self._signatures if s.name != signature.name]
        return SignatureLibrary(kept + [signature])

    @classmethod
    def builtin(cls) -> 'SignatureLibrary':
        return cls([
            Signature.from_weights(
                "english_text", _english_weights(),
                "English prose: letter frequencies, ~18% spaces, light punctuation"),
            Signature.from_weights(
                "source_code", _source_code_weights(),
                "Program text: identifiers, indentation, brackets and operators"),
        ])

    @classmethod
    def load(cls, directory: str) -> 'SignatureLibrary':
        """Load every ``*.json`` signature in ``directory``.

        Unreadable files are skipped with a warning; a missing directory is a
        configuration error.
        """
        if not os.path.isdir(directory):
            raise InvalidConfiguration(f"Signature directory '{directory}' does not exist")
        sigs = []
        for filename in sorted(os.listdir(directory)):
            if filename.endswith(".json"):
                try:
                    with open(os.path.join(directory, filename), 'r') as f:
                        sigs.append(Signature.from_dict(json.load(f)))
                except (OSError, KeyError, TypeError, ValueError) as e:
                    warnings.warn(f"Failed to load signature {filename}: {e}")
        return cls(sigs)

    def save(self, directory: str) -> List[str]:
        os.makedirs(directory, exist_ok=True)
        paths = []
        for sig in self._signatures:
            path = os.path.join(directory, f"{sig.name.lower().replace(' ', '_')}.json")
            with open(path, 'w') as f:
                json.dump(sig.to_dict(), f, indent=2)
            paths.append(path)
        return paths


def cosine_distance(histograms: np.ndarray, references: np.ndarray) -> np.ndarray:
    """1 - cosine similarity, (m, 256) x (k, 256) -> (m, k), in [0, 1]."""
    h = np.asarray(histograms, dtype=np.float64)
    r = np.asarray(references, dtype=np.float64)
    norms = np.linalg.norm(h, axis=1, keepdims=True) * np.linalg.norm(r, axis=1)[None, :]
    sim = (h @ r.T) / np.maximum(norms, np.finfo(np.float64).tiny)
    return np.clip(1.0 - sim, 0.0, 1.0)


def chi_square_distance(histograms: np.ndarray, references: np.ndarray) -> np.ndarray:
    """Symmetric chi-square distance between normalised distributions, in [0, 1]."""
    h = np.asarray(histograms, dtype=np.float64)
    r = np.asarray(references, dtype=np.float64)
    p = h / h.sum(axis=1, keepdims=True)
    q = r / r.sum(axis=1, keepdims=True)
    diff = p[:, None, :] - q[None, :, :]
    total = p[:, None, :] + q[None, :, :]
    with np.errstate(divide='ignore', invalid='ignore'):
        terms = np.where(total > 0, diff * diff / total, 0.0)
    return np.clip(0.5 * terms.sum(axis=2), 0.0, 1.0)


DISTANCES = {
    "cosine": cosine_distance,
    "chi_square": chi_square_distance,
}


# =============================================================================
# SHIFT-CIPHER GUESSER
# =============================================================================

# Row s holds, for each decoded value v, the ciphertext byte (v + s) mod 256
# that decodes to it under shift s.
_SHIFT_INDEX = (np.arange(ALPHABET_SIZE)[None, :] + np.arange(ALPHABET_SIZE)[:, None]) % ALPHABET_SIZE


def shift_encode(data, shift: int) -> bytes:
    """Additive single-byte cipher: ``c_i = (p_i + shift) mod 256``."""
    view = as_byte_view(data)
    return ((view.astype(np.int16) + shift % ALPHABET_SIZE) % ALPHABET_SIZE).astype(np.uint8).tobytes()


def shift_decode(data, shift: int) -> bytes:
    """Inverse of shift_encode: ``p_i = (c_i - shift) mod 256``."""
    return shift_encode(data, -shift)


@dataclass(frozen=True, eq=False)
class CaesarGuessResult:
    best_shift: int
    confidence: float
    matched_signature: str
    distance: float
    runner_up_shift: int
    runner_up_distance: float
    length: int
    distances: Optional[np.ndarray] = None
    support: float = 1.0

    def decode(self, window) -> bytes:
        return shift_decode(window, self.best_shift)

    def is_confident(self, min_confidence: float = 0.5) -> bool:
        return self.confidence >= min_confidence

    def label(self, min_confidence: float = 0.5) -> str:
        """``'shiftN'`` for a confident non-zero shift, else ``''``."""
        if self.best_shift != 0 and self.is_confident(min_confidence):
            return f"shift{self.best_shift}"
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best_shift": self.best_shift,
            "confidence": self.confidence,
            "matched_signature": self.matched_signature,
            "distance": self.distance,
            "runner_up_shift": self.runner_up_shift,
            "runner_up_distance": self.runner_up_distance,
            "length": self.length,
            "support": self.support,
        }


class ShiftCipherGuesser(WindowHeuristic):
    """
    Brute-force every single-byte additive shift and score each decoding.

    The keyspace is 256 shifts, so the whole of it is searched rather than
    guessed from the most frequent byte: every shift's decoded histogram is
    compared with every signature (the map), and the shifts are ranked by
    their best distance (the reduce). Decoding only permutes histogram
    buckets, so candidate histograms are built by re-indexing the window's
    histogram instead of re-decoding the bytes 256 times.

    Confidence is gap-based, the same rule the signature classifier uses for
    its top match: ``(runner_up - best) / runner_up`` over distances. A flat
    landscape, where no shift stands out, scores near 0 however good the
    best raw distance looks.

    The gap is then scaled by the window's support: a window with few
    distinct byte values (NUL padding, erased flash) matches some shift's
    decoding to a single signature peak without saying anything about the
    key. Support rises linearly from 0 at one distinct value to 1 at
    ``min_distinct`` values.
    """

    def __init__(self, library: Optional[SignatureLibrary] = None, distance: str = "cosine",
                 min_distinct: int = 9):
        self.library = SignatureLibrary.builtin() if library is None else library
        if len(self.library) == 0:
            raise InvalidConfiguration("Signature library is empty")
        if distance not in DISTANCES:
            raise InvalidConfiguration(
                f"Unknown distance '{distance}'. Use one of: {list(DISTANCES)}")
        _check_positive_int("min_distinct", min_distinct)
        if min_distinct < 2:
            raise InvalidConfiguration(f"min_distinct must be >= 2, got {min_distinct}")
        self.distance = distance
        self.min_distinct = min_distinct

    def support(self, view: np.ndarray) -> float:
        """Evidence factor in [0, 1] from the number of distinct byte values."""
        distinct = int(np.count_nonzero(byte_histogram(view)))
        return min(1.0, (distinct - 1) / (self.min_distinct - 1))

    @property
    def name(self) -> str:
        return "Shift Cipher"

    @property
    def description(self) -> str:
        return ("Scores all 256 additive shifts of a window against reference byte "
                "distributions and reports the best shift with a gap-based confidence.")

    @property
    def detects(self) -> str:
        return "Caesar / additive byte ciphers over known content"

    def score_shifts(self, window) -> Tuple[np.ndarray, np.ndarray]:
        """Best distance per shift (256,) and the index of the signature that gave it."""
        view = self.validate_window(window)
        counts = byte_histogram(view).astype(np.float64)
        candidates = counts[_SHIFT_INDEX]
        dist = DISTANCES[self.distance](candidates, self.library.matrix)
        best_sig = np.argmin(dist, axis=1)
        return dist[np.arange(ALPHABET_SIZE), best_sig], best_sig

    def guess(self, window) -> CaesarGuessResult:
        view = self.validate_window(window)
        per_shift, best_sig = self.score_shifts(view)
        # stable sort: equal distances resolve to the lowest shift
        ranking = np.argsort(per_shift, kind="stable")
        best, runner = int(ranking[0]), int(ranking[1])
        d_best, d_runner = float(per_shift[best]), float(per_shift[runner])
        gap = (d_runner - d_best) / d_runner if d_runner > 0 else 0.0
        support = self.support(view)
        per_shift.flags.writeable = False
        return CaesarGuessResult(
            best_shift=best,
            confidence=min(max(gap * support, 0.0), 1.0),
            matched_signature=self.library.names[int(best_sig[best])],
            distance=d_best,
            runner_up_shift=runner,
            runner_up_distance=d_runner,
            length=len(view),
            distances=per_shift,
            support=support,
        )

    def evaluate(self, window) -> CaesarGuessResult:
        return self.guess(window)


# =============================================================================
# SPACE-FILLING CURVES
# =============================================================================

class SpaceFillingCurve(ABC):
    """
    Bijection between linear offsets ``0 .. side**2 - 1`` and grid cells.

    Independent of byte semantics: the same curve object places raw bytes,
    annotation layers and anything else that needs to line up cell-by-cell.
    Grids are indexed ``[y, x]``.
    """

    def __init__(self, side_length: int):
        if not _is_power_of_two(side_length):
            raise InvalidConfiguration(
                f"side_length must be a power of two, got {side_length!r}")
        self.side_length = int(side_length)
        self._coords = None
        self._index = None

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    def n_cells(self) -> int:
        return self.side_length * self.side_length

    @property
    def order(self) -> int:
        return self.side_length.bit_length() - 1

    @abstractmethod
    def d2xy_array(self, d: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorised offset -> (x, y)."""
        pass

    @abstractmethod
    def xy2d_array(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """Vectorised (x, y) -> offset."""
        pass

    def d2xy(self, d: int) -> Tuple[int, int]:
        if not 0 <= d < self.n_cells:
            raise IndexError(f"Offset {d} outside 0..{self.n_cells - 1}")
        xs, ys = self.d2xy_array(np.array([d], dtype=np.int64))
        return int(xs[0]), int(ys[0])

    def xy2d(self, x: int, y: int) -> int:
        if not (0 <= x < self.side_length and 0 <= y < self.side_length):
            raise IndexError(f"Cell ({x}, {y}) outside a {self.side_length}x{self.side_length} grid")
        return int(self.xy2d_array(np.array([x], dtype=np.int64),
                                   np.array([y], dtype=np.int64))[0])

    def coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """(xs, ys) for every offset, computed once per curve."""
        if self._coords is None:
            xs, ys = self.d2xy_array(np.arange(self.n_cells, dtype=np.int64))
            xs.flags.writeable = False
            ys.flags.writeable = False
            self._coords = (xs, ys)
        return self._coords

    def index_grid(self) -> np.ndarray:
        """Grid holding the offset of every cell."""
        if self._index is None:
            xs, ys = self.coordinates()
            grid = np.empty((self.side_length, self.side_length), dtype=np.int64)
            grid[ys, xs] = np.arange(self.n_cells, dtype=np.int64)
            grid.flags.writeable = False
            self._index = grid
        return self._index


def _hilbert_rotate(n, x, y, rx, ry):
    """Rotate/flip a quadrant so the sub-curve is in canonical orientation."""
    flip = (ry == 0) & (rx == 1)
    x = np.where(flip, n - 1 - x, x)
    y = np.where(flip, n - 1 - y, y)
    swap = ry == 0
    return np.where(swap, y, x), np.where(swap, x, y)


class HilbertCurve(SpaceFillingCurve):
    """
    Hilbert order: consecutive offsets are always edge-adjacent cells, and
    any run of offsets fills a compact blob, so bytes that are close in the
    file stay close on the grid.
    """

    @property
    def name(self) -> str:
        return "hilbert"

    def d2xy_array(self, d):
        t = np.array(d, dtype=np.int64)
        x = np.zeros_like(t)
        y = np.zeros_like(t)
        s = 1
        while s < self.side_length:
            rx = (t >> 1) & 1
            ry = (t ^ rx) & 1
            x, y = _hilbert_rotate(s, x, y, rx, ry)
            x = x + s * rx
            y = y + s * ry
            t = t >> 2
            s <<= 1
        return x, y

    def xy2d_array(self, x, y):
        x, y = np.broadcast_arrays(np.array(x, dtype=np.int64), np.array(y, dtype=np.int64))
        d = np.zeros_like(x)
        s = self.side_length // 2
        while s > 0:
            rx = ((x & s) > 0).astype(np.int64)
            ry = ((y & s) > 0).astype(np.int64)
            d = d + s * s * ((3 * rx) ^ ry)
            x, y = _hilbert_rotate(self.side_length, x, y, rx, ry)
            s //= 2
        return d


class ZOrderCurve(SpaceFillingCurve):
    """Morton order: bit-interleaving. Cheaper than Hilbert, with jumps at quadrant seams."""

    @property
    def name(self) -> str:
        return "zorder"

    def d2xy_array(self, d):
        d = np.array(d, dtype=np.int64)
        x = np.zeros_like(d)
        y = np.zeros_like(d)
        for b in range(self.order):
            x |= ((d >> (2 * b)) & 1) << b
            y |= ((d >> (2 * b + 1)) & 1) << b
        return x, y

    def xy2d_array(self, x, y):
        x, y = np.broadcast_arrays(np.array(x, dtype=np.int64), np.array(y, dtype=np.int64))
        d = np.zeros_like(x)
        for b in range(self.order):
            d |= ((x >> b) & 1) << (2 * b)
            d |= ((y >> b) & 1) << (2 * b + 1)
        return d


CURVES = {
    "hilbert": HilbertCurve,
    "zorder": ZOrderCurve,
}


@lru_cache(maxsize=32)
def get_curve(name: str, side_length: int) -> SpaceFillingCurve:
    """Shared curve instance, so coordinate tables are built once per (curve, side)."""
    cls = CURVES.get(name)
    if cls is None:
        raise InvalidConfiguration(f"Unknown curve '{name}'. Use one of: {list(CURVES)}")
    return cls(side_length)


# =============================================================================
# TILER
# =============================================================================

@dataclass(frozen=True, eq=False)
class Tile:
    """
    One ``side_length x side_length`` chunk of a byte sequence.

    ``values[y, x]`` holds the byte at the offset the curve maps to (x, y);
    ``valid`` is False on padding cells past the end of the source, so
    consumers can mask them out rather than read them as zero bytes.
    ``annotation``, when present, is a float grid on the same coordinates
    (NaN on padding). ``sequence_length`` is the length of the whole source,
    so a run of tiles knows whether it covers all of it.
    """
    index: int
    source_offset: int
    n_valid: int
    sequence_length: int
    values: np.ndarray
    valid: np.ndarray
    curve: SpaceFillingCurve
    annotation: Optional[np.ndarray] = None

    @property
    def side_length(self) -> int:
        return self.curve.side_length

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    @property
    def n_cells(self) -> int:
        return self.curve.n_cells

    @property
    def n_padding(self) -> int:
        return self.n_cells - self.n_valid

    def coordinate(self, offset: int) -> Tuple[int, int]:
        """Cell (x, y) of an absolute source offset covered by this tile."""
        local = offset - self.source_offset
        if not 0 <= local < self.n_cells:
            raise IndexError(
                f"Offset {offset} not in tile {self.index} "
                f"[{self.source_offset}, {self.source_offset + self.n_cells})")
        return self.curve.d2xy(local)

    def offset_at(self, x: int, y: int) -> int:
        """Absolute source offset of cell (x, y); past the source end on padding cells."""
        return self.source_offset + self.curve.xy2d(x, y)

    def is_padding(self, x: int, y: int) -> bool:
        return not bool(self.valid[y, x])

    def as_masked(self) -> np.ma.MaskedArray:
        return np.ma.masked_array(self.values, mask=~self.valid)

    def annotation_masked(self) -> Optional[np.ma.MaskedArray]:
        if self.annotation is None:
            return None
        return np.ma.masked_array(self.annotation, mask=~self.valid)

    def in_curve_order(self) -> np.ndarray:
        """The tile's real bytes, back in source order."""
        xs, ys = self.curve.coordinates()
        return self.values[ys[:self.n_valid], xs[:self.n_valid]]

    def is_aligned_with(self, other: 'Tile') -> bool:
        """True when two tiles can be compared cell by cell (same grid and curve)."""
        return (self.side_length == other.side_length
                and self.curve.name == other.curve.name)


class TileSequence:
    """
    Lazy, finite, restartable sequence of Tiles over one byte sequence.

    Nothing is laid out until a tile is requested; tile ``i`` is a pure
    function of the input and ``i``, so iterating twice gives equal tiles.
    """

    def __init__(self, sequence, side_length: int = 256, annotation=None,
                 curve: str = "hilbert", padding_value: int = 0):
        self._view = as_byte_view(sequence)
        if len(self._view) == 0:
            raise EmptyInput("Cannot tile an empty sequence")
        self._curve = get_curve(curve, side_length)
        if not 0 <= padding_value <= 255:
            raise InvalidConfiguration(f"padding_value must be a byte, got {padding_value}")
        self.padding_value = padding_value

        self._annotation = None
        if annotation is not None:
            ann = np.asarray(annotation, dtype=np.float64).reshape(-1)
            if len(ann) != len(self._view):
                raise InvalidConfiguration(
                    f"Annotation has {len(ann)} values for {len(self._view)} bytes")
            ann = ann.view()
            ann.flags.writeable = False
            self._annotation = ann

    @property
    def curve(self) -> SpaceFillingCurve:
        return self._curve

    @property
    def side_length(self) -> int:
        return self._curve.side_length

    @property
    def sequence_length(self) -> int:
        return len(self._view)

    def __len__(self):
        cells = self._curve.n_cells
        return -(-len(self._view) // cells)

    def __iter__(self) -> Iterator[Tile]:
        for i in range(len(self)):
            yield self._build(i)

    def __getitem__(self, i):
        if isinstance(i, slice):
            return [self._build(j) for j in range(*i.indices(len(self)))]
        n = len(self)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(f"Tile index out of range (have {n} tiles)")
        return self._build(i)

    def _build(self, i: int) -> Tile:
        cells = self._curve.n_cells
        side = self._curve.side_length
        start = i * cells
        chunk = self._view[start:start + cells]
        n_valid = len(chunk)
        xs, ys = self._curve.coordinates()

        flat = np.full(cells, self.padding_value, dtype=np.uint8)
        flat[:n_valid] = chunk
        valid_flat = np.zeros(cells, dtype=bool)
        valid_flat[:n_valid] = True

        values = np.empty((side, side), dtype=np.uint8)
        values[ys, xs] = flat
        valid = np.empty((side, side), dtype=bool)
        valid[ys, xs] = valid_flat

        annotation = None
        if self._annotation is not None:
            ann_flat = np.full(cells, np.nan)
            ann_flat[:n_valid] = self._annotation[start:start + n_valid]
            annotation = np.empty((side, side), dtype=np.float64)
            annotation[ys, xs] = ann_flat
            annotation.flags.writeable = False

        values.flags.writeable = False
        valid.flags.writeable = False
        return Tile(index=i, source_offset=start, n_valid=n_valid,
                    sequence_length=len(self._view), values=values, valid=valid,
                    curve=self._curve, annotation=annotation)


def tile(sequence, side_length: int = 256, annotation=None, curve: str = "hilbert") -> TileSequence:
    """
    Map a byte sequence onto ``side_length x side_length`` grids.

    Parameters
    ----------
    sequence : bytes-like or uint8 array
    side_length : int, power of two (256 gives 65536 cells per tile)
    annotation : array-like of len(sequence), optional
        Per-byte values (entropy, band codes, ...) placed on the same cells.
    curve : 'hilbert' (default) or 'zorder'

    Returns
    -------
    TileSequence, one Tile per ``side_length**2`` bytes, the last one padded.
    """
    return TileSequence(sequence, side_length=side_length, annotation=annotation, curve=curve)


def untile(tiles) -> bytes:
    """
    Restore the bytes behind the complete run of tiles of one source, in order.

    The run must start at offset 0, have no gaps and end at the source
    length; a missing first or last tile is an error, not a shorter file.
    """
    parts = []
    first = None
    expected = 0
    for t in tiles:
        if first is None:
            first = t
        elif not t.is_aligned_with(first):
            raise InvalidConfiguration("Tiles use different grids or curves")
        elif t.sequence_length != first.sequence_length:
            raise InvalidConfiguration(
                f"Tile {t.index} is from a {t.sequence_length}-byte source, "
                f"expected {first.sequence_length}")
        if t.source_offset != expected:
            raise InvalidConfiguration(
                f"Tile {t.index} starts at {t.source_offset}, expected {expected}")
        parts.append(t.in_curve_order())
        expected = t.source_offset + t.n_valid
    if not parts:
        raise EmptyInput("No tiles to reassemble")
    if expected != first.sequence_length:
        raise InvalidConfiguration(
            f"Tiles end at {expected}, source has {first.sequence_length} bytes")
    return np.concatenate(parts).tobytes()


# =============================================================================
# WHOLE-FILE BYTE REPORT
# =============================================================================

@dataclass(frozen=True, eq=False)
class ByteReport:
    length: int
    entropy: float
    byte_freq: np.ndarray
    top_transitions: Dict[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "length": self.length,
            "entropy": self.entropy,
            "byte_freq": self.byte_freq.tolist(),
            "top_transitions": dict(self.top_transitions),
        }


def byte_report(sequence, top: int = 20) -> ByteReport:
    """
    Whole-sequence statistics: entropy, byte frequencies and the ``top`` most
    frequent byte bigrams (first-order Markov transitions).

    Transition keys are 4 hex digits ``"xxyy"`` for byte xx followed by yy;
    values are bigram counts divided by the sequence length.
    """
    view = as_byte_view(sequence)
    n = len(view)
    if n == 0:
        raise EmptyInput("Cannot report on an empty sequence")
    if top < 0:
        raise InvalidConfiguration(f"top must be >= 0, got {top}")
    counts = byte_histogram(view)
    freq = counts / n
    freq.flags.writeable = False

    transitions = {}
    if n > 1 and top > 0:
        pairs = view[:-1].astype(np.int64) * ALPHABET_SIZE + view[1:]
        pair_counts = np.bincount(pairs, minlength=ALPHABET_SIZE * ALPHABET_SIZE)
        seen = np.nonzero(pair_counts)[0]
        ranked = seen[np.lexsort((seen, -pair_counts[seen]))][:top]
        for p in ranked:
            p = int(p)
            transitions[f"{p >> 8:02x}{p & 0xFF:02x}"] = float(pair_counts[p] / n)

    return ByteReport(length=n, entropy=shannon_entropy(counts), byte_freq=freq,
                      top_transitions=transitions)


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class EngineConfig:
    """
    Immutable configuration record for a HeuristicsEngine.

    ``signature_library_reference`` is a directory of signature JSON files;
    None selects the built-in library.
    """
    window_size: int = 1024
    stride: Optional[int] = None
    partial_window: str = PARTIAL_EXCLUDE
    side_length: int = 256
    curve: str = "hilbert"
    chi_square_thresholds: ChiSquareThresholds = field(default_factory=ChiSquareThresholds)
    signature_library_reference: Optional[str] = None
    distance: str = "cosine"
    transition_delta: float = 1.5
    n_workers: int = 1

    def __post_init__(self):
        if isinstance(self.chi_square_thresholds, dict):
            object.__setattr__(self, "chi_square_thresholds",
                               ChiSquareThresholds(**self.chi_square_thresholds))
        _check_window_params(self.window_size, self.effective_stride, self.partial_window)
        if not _is_power_of_two(self.side_length):
            raise InvalidConfiguration(
                f"side_length must be a power of two, got {self.side_length!r}")
        if self.curve not in CURVES:
            raise InvalidConfiguration(f"Unknown curve '{self.curve}'. Use one of: {list(CURVES)}")
        if self.distance not in DISTANCES:
            raise InvalidConfiguration(
                f"Unknown distance '{self.distance}'. Use one of: {list(DISTANCES)}")
        if self.transition_delta <= 0:
            raise InvalidConfiguration(
                f"transition_delta must be > 0, got {self.transition_delta}")
        _check_positive_int("n_workers", self.n_workers)

    @property
    def effective_stride(self) -> int:
        return self.window_size if self.stride is None else self.stride

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EngineConfig':
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfiguration(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# ENGINE (MAIN INTERFACE)
# =============================================================================

@dataclass(frozen=True)
class WindowReport:
    """Everything the engine found about one profiled window."""
    window: Window
    entropy: float
    results: Dict[str, Any] = field(default_factory=dict)

    @property
    def chi_square(self) -> Optional[ChiSquareResult]:
        for r in self.results.values():
            if isinstance(r, ChiSquareResult):
                return r
        return None

    @property
    def caesar(self) -> Optional[CaesarGuessResult]:
        for r in self.results.values():
            if isinstance(r, CaesarGuessResult):
                return r
        return None

    def composite_label(self, min_confidence: float = 0.5) -> str:
        """Band plus any confident shift, e.g. ``'structured+shift13'``."""
        chi = self.chi_square
        base = chi.label if chi is not None else "unknown"
        guess = self.caesar
        suffix = guess.label(min_confidence) if guess is not None else ""
        return f"{base}+{suffix}" if suffix else base

    def to_dict(self) -> Dict[str, Any]:
        out = {"offset": self.window.offset, "length": self.window.length,
               "entropy": self.entropy, "label": self.composite_label()}
        for name, r in self.results.items():
            out[name] = r.to_dict() if hasattr(r, "to_dict") else r
        return out


@dataclass(frozen=True)
class ScanReport:
    """Combined results of one HeuristicsEngine.analyze() call."""
    label: str
    length: int
    profile: EntropyProfile
    windows: Tuple[WindowReport, ...]
    transitions: Tuple[Transition, ...]
    byte_report: ByteReport

    def chi_square_results(self) -> List[ChiSquareResult]:
        return [w.chi_square for w in self.windows if w.chi_square is not None]

    def caesar_results(self) -> List[CaesarGuessResult]:
        return [w.caesar for w in self.windows if w.caesar is not None]

    def band_counts(self) -> Dict[str, int]:
        return dict(Counter(r.band.value for r in self.chi_square_results()))

    def summary(self, min_confidence: float = 0.5) -> str:
        lines = ["=" * 60, "BYTE HEURISTICS SCAN", "=" * 60]
        head = f"{self.label}: " if self.label else ""
        lines.append(f"{head}{self.length} bytes, whole-file entropy "
                     f"{self.byte_report.entropy:.3f} bits/byte")
        lines.append(self.profile.summary())
        bands = self.band_counts()
        if bands:
            lines.append("Bands: " + ", ".join(f"{k}={v}" for k, v in sorted(bands.items())))
        for t in self.transitions:
            lines.append(f"  transition @0x{t.offset:08x}: {t.before:.2f} -> {t.after:.2f} ({t.kind})")
        shifted = [w for w in self.windows
                   if w.caesar is not None and w.caesar.label(min_confidence)]
        for w in shifted:
            g = w.caesar
            lines.append(f"  shift {g.best_shift} @0x{w.window.offset:08x} "
                         f"({g.matched_signature}, confidence {g.confidence:.2f})")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "length": self.length,
            "entropy": self.byte_report.entropy,
            "top_transitions": dict(self.byte_report.top_transitions),
            "window_size": self.profile.window_size,
            "stride": self.profile.stride,
            "skipped": [[w.offset, w.length] for w in self.profile.skipped],
            "transitions": [{"offset": t.offset, "before": t.before, "after": t.after}
                            for t in self.transitions],
            "windows": [w.to_dict() for w in self.windows],
        }


# Parallel evaluation helpers (module-level for pickling)
_worker_heuristics = None


def _worker_init(heuristics):
    global _worker_heuristics
    _worker_heuristics = heuristics


def _worker_evaluate(chunk):
    return [h.evaluate(chunk) for h in _worker_heuristics]


class HeuristicsEngine:
    """
    Main interface: profile a sequence, run window heuristics, tile it.

    Usage:
        engine = HeuristicsEngine(EngineConfig(window_size=2048))
        engine.add_default_heuristics()
        report = engine.analyze(data)
        tiles = engine.tiles(data, annotate="band")
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config if config is not None else EngineConfig()
        self.heuristics: List[WindowHeuristic] = []
        self._library = None

    @property
    def library(self) -> SignatureLibrary:
        if self._library is None:
            ref = self.config.signature_library_reference
            self._library = SignatureLibrary.builtin() if ref is None else SignatureLibrary.load(ref)
        return self._library

    def add_heuristic(self, heuristic: WindowHeuristic) -> 'HeuristicsEngine':
        """Add a window heuristic (chainable)."""
        if any(h.name == heuristic.name for h in self.heuristics):
            raise InvalidConfiguration(f"A heuristic named '{heuristic.name}' is already added")
        self.heuristics.append(heuristic)
        return self

    def add_default_heuristics(self) -> 'HeuristicsEngine':
        """Chi-square classifier and shift-cipher guesser, configured from self.config."""
        self.heuristics = [
            ChiSquareClassifier(self.config.chi_square_thresholds),
            ShiftCipherGuesser(self.library, self.config.distance),
        ]
        return self

    def profiler(self) -> EntropyProfiler:
        c = self.config
        return EntropyProfiler(c.window_size, c.effective_stride, c.partial_window)

    def profile(self, data) -> EntropyProfile:
        return self.profiler().profile(data)

    def evaluate_windows(self, data, windows: Sequence[Window]) -> List[List[Any]]:
        """Run every heuristic on every window; results come back in window order."""
        view = as_byte_view(data)
        if self.config.n_workers > 1 and len(windows) > 1:
            chunks = [w.slice(view).tobytes() for w in windows]
            with multiprocessing.Pool(
                processes=self.config.n_workers,
                initializer=_worker_init,
                initargs=(self.heuristics,),
            ) as pool:
                return pool.map(_worker_evaluate, chunks)
        return [[h.evaluate(w.slice(view)) for h in self.heuristics] for w in windows]

    def analyze(self, data, label: str = "") -> ScanReport:
        view = as_byte_view(data)
        profile = self.profile(view)
        windows = profile.windows()
        results = self.evaluate_windows(view, windows)
        names = [h.name for h in self.heuristics]
        reports = tuple(
            WindowReport(window=s.window, entropy=s.entropy, results=dict(zip(names, res)))
            for s, res in zip(profile.samples, results)
        )
        return ScanReport(
            label=label,
            length=len(view),
            profile=profile,
            windows=reports,
            transitions=tuple(find_transitions(profile, self.config.transition_delta)),
            byte_report=byte_report(view),
        )

    def tiles(self, data, annotate: Optional[str] = None,
              report: Optional[ScanReport] = None) -> TileSequence:
        """
        Tile ``data`` with an optional annotation layer.

        annotate : None, 'entropy' (per-byte entropy of the covering window)
            or 'band' (ChiSquareBand.code of the covering window). Uncovered
            bytes get NaN. A precomputed ``report`` for the same data is
            reused instead of re-analysing.
        """
        view = as_byte_view(data)
        annotation = None
        if annotate == "entropy":
            profile = report.profile if report is not None else self.profile(view)
            annotation = profile.per_offset()
        elif annotate == "band":
            if report is None:
                engine = self
                if not any(isinstance(h, ChiSquareClassifier) for h in self.heuristics):
                    engine = HeuristicsEngine(self.config).add_heuristic(
                        ChiSquareClassifier(self.config.chi_square_thresholds))
                report = engine.analyze(view)
            banded = [w for w in report.windows if w.chi_square is not None]
            annotation = annotate_windows(len(view), [w.window for w in banded],
                                          [w.chi_square.band.code for w in banded])
        elif annotate is not None:
            raise InvalidConfiguration(
                f"Unknown annotation '{annotate}'. Use None, 'entropy' or 'band'.")
        return TileSequence(view, side_length=self.config.side_length,
                            annotation=annotation, curve=self.config.curve)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def quick_scan(data, label: str = "", **config) -> ScanReport:
    """Analyse with the default heuristics; keyword arguments go to EngineConfig."""
    engine = HeuristicsEngine(EngineConfig(**config)).add_default_heuristics()
    return engine.analyze(data, label)
