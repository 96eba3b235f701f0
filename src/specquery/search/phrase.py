"""Phrase matching over positional postings.

A phrase matches when its terms occur in order at consecutive positions.
With a non-zero slop, terms may be displaced as long as the total
displacement (the match length) stays within the slop; such sloppy matches
contribute less to the phrase frequency the further apart they are.
"""

from __future__ import annotations

from collections.abc import Sequence

from specquery.search.similarity import sloppy_freq


def exact_phrase_freq(term_positions: Sequence[Sequence[int]]) -> float:
    """Count occurrences of the terms at consecutive positions.

    Args:
        term_positions: Positions of each phrase term in one document, in
            phrase order.

    Returns:
        Number of places where the full phrase occurs.
    """
    if not term_positions or any(not positions for positions in term_positions):
        return 0.0

    position_sets = [set(positions) for positions in term_positions]
    matches = 0
    for anchor in term_positions[0]:
        if all(anchor + offset in position_sets[offset] for offset in range(1, len(position_sets))):
            matches += 1
    return float(matches)


def match_length(anchor: int, term_positions: Sequence[Sequence[int]]) -> int | None:
    """Return the displacement of the closest phrase match around ``anchor``.

    For each later term, the free position closest to where it would sit in
    an exact match is chosen greedily; a position already taken by an earlier
    term of the same match is never reused. The match length is the spread of
    the resulting per-term offsets, 0 meaning an exact match. Returns None when
    some term has no free position left (a repeated phrase term that occurs
    fewer times in the document).
    """
    taken = {anchor}
    offsets = [anchor]
    for offset, positions in enumerate(term_positions[1:], start=1):
        free = [position for position in positions if position not in taken]
        if not free:
            return None
        expected = anchor + offset
        closest = min(free, key=lambda p: abs(p - expected))
        taken.add(closest)
        offsets.append(closest - offset)
    return max(offsets) - min(offsets)


def sloppy_phrase_freq(term_positions: Sequence[Sequence[int]], slop: int) -> float:
    """Sum the sloppy frequency of every match within ``slop``."""
    if not term_positions or any(not positions for positions in term_positions):
        return 0.0

    total = 0.0
    for anchor in term_positions[0]:
        length = match_length(anchor, term_positions)
        if length is not None and length <= slop:
            total += sloppy_freq(length)
    return total


def phrase_freq(term_positions: Sequence[Sequence[int]], slop: int = 0) -> float:
    """Return the phrase frequency of one document."""
    if slop <= 0:
        return exact_phrase_freq(term_positions)
    return sloppy_phrase_freq(term_positions, slop)
