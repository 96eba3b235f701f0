"""Classic TF-IDF similarity used to score query matches.

The score of a document ``d`` for a query ``q`` follows the practical scoring
function of vector-space engines::

    score(q, d) = coord(q, d) * query_norm(q) * sum(tf(t in d) * idf(t)^2 * boost(t) * norm(t, d))

Each helper below covers one factor so query types can compose them. The
functions stay independent of the index implementation.
"""

from __future__ import annotations

import math


def idf(doc_freq: int, num_docs: int) -> float:
    """Return inverse document frequency ``1 + ln(N / (df + 1))``."""

    return 1.0 + math.log(num_docs / (doc_freq + 1)) if num_docs > 0 else 0.0


def tf(freq: float) -> float:
    """Return the square-root damped term frequency."""

    return math.sqrt(freq) if freq > 0 else 0.0


def sloppy_freq(distance: int) -> float:
    """Frequency credited to a phrase match spread over ``distance`` extra positions."""

    return 1.0 / (distance + 1)


def coord(overlap: int, max_overlap: int) -> float:
    """Fraction of optional query clauses that matched."""

    if max_overlap <= 0:
        return 1.0
    return overlap / max_overlap


def query_norm(sum_of_squared_weights: float) -> float:
    """Normalization that makes scores comparable across queries."""

    if sum_of_squared_weights <= 0 or math.isinf(sum_of_squared_weights):
        return 1.0
    return 1.0 / math.sqrt(sum_of_squared_weights)


def encode_norm(value: float) -> float:
    """Round ``value`` down to a float with a 3-bit mantissa.

    Field norms are stored in a single byte, which keeps one leading bit and
    three mantissa bits. Quantizing here reproduces the exact values a
    byte-encoded norm decodes to.
    """

    if value <= 0:
        return 0.0
    mantissa, exponent = math.frexp(value)
    return math.ldexp(math.floor(mantissa * 16) / 16, exponent)


def length_norm(num_terms: int) -> float:
    """Return the quantized ``1 / sqrt(num_terms)`` field length norm."""

    if num_terms <= 0:
        return 0.0
    return encode_norm(1.0 / math.sqrt(num_terms))
