"""
Synthetic byte-content registry for Hilbert Forensics.

Every generator that produces a recognisable kind of content (prose, program
text, compressed streams, ciphertext, sampled media, padding) lives here, so
tests, signature training and the demo scripts all draw from one place.

Canonical generator signature:
    (rng: np.random.Generator, size: int) -> np.ndarray[uint8]

Usage:
    from tools.sources import get_sources, seed_adapter, english_bytes

    for s in get_sources(domain="text"):
        data = s.gen_fn(rng, 4096)

    # For train_signature.py (needs (seed, size) signature)
    for s in get_sources(signature=True):
        fn = seed_adapter(s.gen_fn)
        data = fn(42, 8192)
"""

import bz2
import zlib
import numpy as np
from dataclasses import dataclass
from typing import Callable, List, Optional

from Crypto.Cipher import AES


# ================================================================
# Registry infrastructure
# ================================================================


@dataclass
class Source:
    name: str
    gen_fn: Callable  # (rng, size) -> uint8[]
    domain: str
    description: str = ""
    signature: bool = False
    expected_band: Optional[str] = None


_REGISTRY: List[Source] = []


def source(name, domain, description="", signature=False, expected_band=None):
    """Decorator that registers a generator function."""

    def decorator(fn):
        _REGISTRY.append(
            Source(
                name=name,
                gen_fn=fn,
                domain=domain,
                description=description,
                signature=signature,
                expected_band=expected_band,
            )
        )
        return fn

    return decorator


def get_sources(domain=None, signature=None):
    """Filter registry.  None = no filter on that field."""
    result = _REGISTRY
    if domain is not None:
        result = [s for s in result if s.domain == domain]
    if signature is not None:
        result = [s for s in result if s.signature == signature]
    return result


def get_source(name):
    for s in _REGISTRY:
        if s.name == name:
            return s
    raise KeyError(name)


def seed_adapter(gen_fn):
    """Wrap (rng, size) -> (seed, size) for train_signature.py."""

    def adapted(seed, size):
        rng = np.random.default_rng(seed)
        return gen_fn(rng, size)

    return adapted


# ================================================================
# Domain colours (shared by figures and CLI)
# ================================================================

DOMAIN_COLORS = {
    "text": "#2ecc71",
    "compressed": "#f39c12",
    "random": "#95a5a6",
    "cipher": "#e74c3c",
    "media": "#3498db",
    "padding": "#9b59b6",
}


# ================================================================
# Shared helpers
# ================================================================


def _fit(raw, size):
    """bytes -> uint8 array of exactly ``size`` (raw must be long enough)."""
    return np.frombuffer(raw[:size], dtype=np.uint8).copy()


_WORDS = [
    ("the", 60), ("of", 32), ("and", 30), ("to", 28), ("a", 24), ("in", 20),
    ("is", 12), ("that", 12), ("it", 11), ("was", 10), ("for", 9), ("on", 8),
    ("with", 8), ("as", 8), ("he", 7), ("she", 6), ("they", 6), ("be", 6),
    ("at", 6), ("by", 5), ("this", 5), ("had", 5), ("not", 5), ("but", 5),
    ("from", 5), ("or", 4), ("have", 4), ("an", 4), ("which", 4), ("one", 4),
    ("were", 4), ("all", 3), ("there", 3), ("would", 3), ("their", 3),
    ("been", 3), ("when", 3), ("who", 3), ("will", 3), ("more", 3), ("if", 3),
    ("out", 3), ("so", 3), ("said", 3), ("what", 3), ("up", 3), ("its", 3),
    ("about", 2), ("into", 2), ("than", 2), ("them", 2), ("can", 2), ("only", 2),
    ("other", 2), ("new", 2), ("some", 2), ("could", 2), ("time", 2), ("these", 2),
    ("two", 2), ("may", 2), ("then", 2), ("first", 2), ("any", 2), ("like", 2),
    ("now", 2), ("people", 2), ("over", 2), ("water", 1), ("house", 1),
    ("letter", 1), ("morning", 1), ("station", 1), ("government", 1),
    ("history", 1), ("question", 1), ("country", 1), ("nothing", 1),
    ("through", 1), ("between", 1), ("evening", 1), ("different", 1),
    ("remember", 1), ("children", 1), ("quickly", 1), ("village", 1),
    ("report", 1), ("journey", 1), ("doctor", 1), ("window", 1), ("silver", 1),
    ("market", 1), ("believe", 1), ("perhaps", 1), ("himself", 1), ("family", 1),
    ("working", 1), ("garden", 1), ("because", 2), ("never", 1), ("always", 1),
    ("before", 1), ("after", 1), ("where", 1), ("every", 1), ("light", 1),
    ("long", 1), ("great", 1), ("little", 1), ("old", 1), ("right", 1),
    ("night", 1), ("year", 1), ("hand", 1), ("eyes", 1), ("back", 1),
    ("found", 1), ("thought", 1), ("know", 1), ("made", 1), ("went", 1),
]
_WORD_LIST = [w for w, _ in _WORDS]
_WORD_P = np.array([c for _, c in _WORDS], dtype=np.float64)
_WORD_P /= _WORD_P.sum()


def english_bytes(rng, size):
    """English-like prose: weighted common words, sentences, commas, paragraphs."""
    out = []
    total = 0
    sentence_no = 0
    while total < size:
        n = int(rng.integers(6, 19))
        words = list(rng.choice(_WORD_LIST, size=n, p=_WORD_P))
        words[0] = words[0].capitalize()
        if n > 9 and rng.random() < 0.5:
            k = int(rng.integers(3, n - 3))
            words[k] = words[k] + ","
        sentence = " ".join(words) + ("." if rng.random() < 0.9 else "?")
        sentence_no += 1
        sep = "\n" if sentence_no % 6 == 0 else " "
        out.append(sentence + sep)
        total += len(sentence) + 1
    return "".join(out).encode("ascii")[:size]


_IDENTIFIERS = ["count", "value", "result", "items", "index", "buffer", "offset",
                "config", "data", "name", "path", "total", "window", "length",
                "entry", "record", "parser", "handler", "response", "options"]
_FUNCS = ["load", "parse", "update", "compute", "read_block", "validate",
          "render", "process", "get_value", "build_index", "flush", "reset"]

_CODE_TEMPLATES = [
    "def {f}(self, {a}, {b}=None):\n",
    "    \"\"\"Return the {a} for {b}.\"\"\"\n",
    "    if {a} is None:\n        return {b}\n",
    "    for {a} in range(len({b})):\n",
    "        {a} += {b}[{a}] * {n}\n",
    "    {a} = self.{f}({b}, {n})\n",
    "    {a}_list = [{b} for {b} in {a} if {b} > {n}]\n",
    "    raise ValueError(f\"bad {a}: {{{b}!r}}\")\n",
    "    return {{\"{a}\": {a}, \"{b}\": {b}}}\n",
    "\n\nclass {A}Handler(object):\n",
    "    # {a} must be set before {f}()\n",
    "    self.{a} = {b}.get(\"{a}\", {n})\n",
    "    with open({a}, \"rb\") as {b}:\n        {a} = {b}.read({n})\n",
    "import {a}\nfrom {b} import {f}\n",
    "    while {a} < {n}:\n        {a} = {f}({a}, {b})\n",
]


def python_source_bytes(rng, size):
    """Python-like program text assembled from statement templates."""
    out = []
    total = 0
    while total < size:
        tpl = _CODE_TEMPLATES[int(rng.integers(len(_CODE_TEMPLATES)))]
        a, b = rng.choice(_IDENTIFIERS, size=2, replace=False)
        line = tpl.format(a=a, b=b, A=a.capitalize(),
                          f=_FUNCS[int(rng.integers(len(_FUNCS)))],
                          n=int(rng.integers(0, 4096)))
        out.append(line)
        total += len(line)
    return "".join(out).encode("ascii")[:size]


def _compressed_english(rng, size, compress):
    n = max(size * 8, 4096)
    while True:
        packed = compress(english_bytes(rng, n))
        if len(packed) >= size:
            return _fit(packed, size)
        n *= 2


def aes_ctr_encrypt(rng, plaintext):
    key = rng.bytes(16)
    nonce = rng.bytes(8)
    cipher = AES.new(key, AES.MODE_CTR, nonce=nonce)
    return cipher.encrypt(plaintext)


def caesar_english(rng, size, shift):
    """English prose under a single-byte additive shift (mod 256)."""
    plain = np.frombuffer(english_bytes(rng, size), dtype=np.uint8)
    return ((plain.astype(np.int16) + shift) % 256).astype(np.uint8)


# ================================================================
# Text
# ================================================================


@source(
    "English Text",
    domain="text",
    description="Word-frequency weighted English prose with punctuation and paragraphs",
    signature=True,
    expected_band="structured",
)
def gen_english(rng, size):
    return _fit(english_bytes(rng, size), size)


@source(
    "Python Source",
    domain="text",
    description="Indented Python statements: identifiers, brackets, string literals",
    signature=True,
    expected_band="structured",
)
def gen_python_source(rng, size):
    return _fit(python_source_bytes(rng, size), size)


# ================================================================
# Compressed
# ================================================================


@source(
    "Zlib English",
    domain="compressed",
    description="DEFLATE-compressed prose --- near-uniform bytes with residual bias",
)
def gen_zlib_english(rng, size):
    return _compressed_english(rng, size, lambda b: zlib.compress(b, 9))


@source(
    "BZip2 English",
    domain="compressed",
    description="BWT + Huffman compressed prose",
)
def gen_bz2_english(rng, size):
    return _compressed_english(rng, size, lambda b: bz2.compress(b, 9))


# ================================================================
# Random & ciphertext
# ================================================================


@source(
    "Uniform Random",
    domain="random",
    description="Independent uniform bytes",
    expected_band="random",
)
def gen_uniform_random(rng, size):
    return rng.integers(0, 256, size, dtype=np.uint8)


@source(
    "AES-CTR English",
    domain="cipher",
    description="English prose under AES-128 in CTR mode --- indistinguishable from random",
    expected_band="random",
)
def gen_aes_ctr(rng, size):
    ct = aes_ctr_encrypt(rng, english_bytes(rng, size))
    return _fit(ct, size)


@source(
    "Caesar English",
    domain="cipher",
    description="English prose shifted by a random non-zero byte --- same histogram shape, relabelled",
    expected_band="structured",
)
def gen_caesar_english(rng, size):
    return caesar_english(rng, size, int(rng.integers(1, 256)))


# ================================================================
# Media & padding
# ================================================================


@source(
    "Gaussian Media",
    domain="media",
    description="8-bit samples of a noisy analogue signal, clipped normal around mid-scale",
    expected_band="compressed_or_media",
)
def gen_gaussian_media(rng, size):
    return np.clip(rng.normal(128, 60, size), 0, 255).astype(np.uint8)


@source(
    "Zero Padding",
    domain="padding",
    description="Runs of NUL bytes as found between sections and at file tails",
    expected_band="structured",
)
def gen_zero_padding(rng, size):
    return np.zeros(size, dtype=np.uint8)
