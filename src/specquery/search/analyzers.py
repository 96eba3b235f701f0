"""Text analysis shared by indexing and query compilation.

An analyzer turns a field value into positioned tokens: a tokenizer splits
the text, then token filters rewrite or drop tokens in order. Positions are
renumbered after filtering, so a dropped stopword leaves no gap.

Indexes are built with one analyzer per field (:class:`FieldAnalyzer`), and
PHRASE/SIM queries must be tokenized with the same one, otherwise query
terms never line up with the postings. The compiler therefore only depends
on the narrow :class:`TermTokenizer` capability.

Registered analyzers:

* ``whitespace`` - split on whitespace, keep case and punctuation;
* ``standard`` - word characters only, lowercased;
* ``english`` - ``standard`` plus English stopword removal;
* ``keyword`` - the whole value as a single token.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
import re
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Token:
    text: str
    position: int
    start_char: int
    end_char: int


class Analyzer(Protocol):
    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TermTokenizer(Protocol):
    """What the query compiler needs from an index's analysis: field-aware term lists."""

    def tokenize(self, field_name: str, text: str) -> list[str]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Emits one token per regex match, numbered from 0."""

    WORD_PATTERN = r"[\w']+"

    def __init__(self, pattern: str = WORD_PATTERN) -> None:
        self.pattern = re.compile(pattern, re.UNICODE)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self.pattern.finditer(text)):
            yield Token(match.group(0), position, match.start(), match.end())


class WhitespaceTokenizer(RegexTokenizer):
    def __init__(self) -> None:
        super().__init__(r"\S+")


class LowercaseFilter:
    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            lowered = token.text.lower()
            yield token if lowered == token.text else replace(token, text=lowered)


# Lucene's classic English stop set
DEFAULT_STOPWORDS = tuple(
    "a an and are as at be but by for if in into is it no not of on or such "
    "that the their then there these they this to was will with".split()
)


class StopFilter:
    """Drops tokens whose lowercased text is a stopword."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        self.stopwords = frozenset(word.lower() for word in (DEFAULT_STOPWORDS if stopwords is None else stopwords))

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        return (token for token in tokens if token.text.lower() not in self.stopwords)


class AnalyzerPipeline:
    """Tokenizer followed by filters; the result is renumbered from 0."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] = ()) -> None:
        self.tokenizer = tokenizer
        self.filters = tuple(filters)

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        return [
            token if token.position == position else replace(token, position=position)
            for position, token in enumerate(stream)
        ]


class WhitespaceAnalyzer(AnalyzerPipeline):
    def __init__(self) -> None:
        super().__init__(WhitespaceTokenizer())


class StandardAnalyzer(AnalyzerPipeline):
    """Lowercased word tokens.

    Args:
        stopwords: Words to drop. ``None`` selects :data:`DEFAULT_STOPWORDS`;
            an empty sequence (the default) keeps every word.
    """

    def __init__(self, *, stopwords: Sequence[str] | None = ()) -> None:
        filters: list[TokenFilter] = [LowercaseFilter()]
        if stopwords is None or stopwords:
            filters.append(StopFilter(stopwords))
        super().__init__(RegexTokenizer(), filters)


class KeywordAnalyzer:
    """The whole value as one token; empty text yields nothing."""

    def __call__(self, text: str) -> list[Token]:
        return [Token(text, 0, 0, len(text))] if text else []


_ANALYZERS: dict[str, Callable[[], Analyzer]] = {
    "english": lambda: StandardAnalyzer(stopwords=None),
    "keyword": KeywordAnalyzer,
    "standard": StandardAnalyzer,
    "whitespace": WhitespaceAnalyzer,
}


def available_analyzers() -> list[str]:
    return sorted(_ANALYZERS)


def get_analyzer(name: str) -> Analyzer:
    """Instantiate a registered analyzer by case-insensitive name.

    Raises:
        ValueError: ``name`` is not registered.
    """
    factory = _ANALYZERS.get(name.lower())
    if factory is None:
        msg = f"Unknown analyzer '{name}'. Available: {available_analyzers()}"
        raise ValueError(msg)
    return factory()


class FieldAnalyzer:
    """Analyzer per field, with a default for fields that have none of their own."""

    def __init__(self, default: Analyzer, per_field: Mapping[str, Analyzer] | None = None) -> None:
        self.default = default
        self.per_field = dict(per_field or {})

    @classmethod
    def named(cls, name: str, per_field: Mapping[str, str] | None = None) -> FieldAnalyzer:
        """Build from registered analyzer names."""
        overrides = {field_name: get_analyzer(analyzer_name) for field_name, analyzer_name in (per_field or {}).items()}
        return cls(get_analyzer(name), overrides)

    def analyzer_for(self, field_name: str) -> Analyzer:
        return self.per_field.get(field_name, self.default)

    def analyze(self, field_name: str, text: str) -> list[Token]:
        return self.analyzer_for(field_name)(text)

    def tokenize(self, field_name: str, text: str) -> list[str]:
        return [token.text for token in self.analyze(field_name, text) if token.text]
