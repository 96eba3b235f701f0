"""Error hierarchy for query compilation, geo validation and numeric coercion.

Every error is a ``ValueError`` so transport layers can map the whole family to
a single "bad request" response. Errors raised while compiling carry the
location of the offending node inside the spec tree
(``query_spec.clauses[1].query_spec``) so callers can point at the exact
clause that failed.
"""

from __future__ import annotations


class SpecQueryError(ValueError):
    """Base class for all errors raised by the query layer.

    Args:
        message: Human readable description of the problem.
        path: Location of the failing node inside the spec tree, if known.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)

    def at(self, path: str) -> SpecQueryError:
        """Return a copy of this error located at ``path``.

        Errors that already know their location keep it, since the innermost
        node is the most precise one.
        """
        if self.path:
            return self
        located = type(self)(self.message, path=path)
        located.__cause__ = self.__cause__
        return located


class CoercionError(SpecQueryError):
    """Raised when a value that must be numeric is absent or non-numeric."""


class GeoValidationError(SpecQueryError):
    """Raised when coordinates or a search radius are invalid."""


class CoordinateOutOfRange(GeoValidationError):
    """Latitude outside [-90, 90] or longitude outside [-180, 180]."""


class NonPositiveDistance(GeoValidationError):
    """Search radius distance that is zero, negative or not finite."""


class UnknownIndexError(SpecQueryError):
    """Raised when a search names an index that does not exist."""


class QueryCompileError(SpecQueryError):
    """Base class for structural errors in a query spec."""


class MissingType(QueryCompileError):
    """Spec node has no ``type`` discriminator."""


class UnsupportedType(QueryCompileError):
    """Spec node has a ``type`` that is not a known query kind."""


class MissingRequiredField(QueryCompileError):
    """A required field is absent or has the wrong shape."""


class InvalidRange(QueryCompileError):
    """NUMRANGE ``range`` does not match the bracket grammar or has a non-finite bound."""


class InvalidOccurs(QueryCompileError):
    """BOOL clause has a missing or unrecognised ``occurs`` value."""


class EmptySubqueryList(QueryCompileError):
    """BOOL or DISMAX node with no clauses/subqueries."""


class PhraseBuildError(QueryCompileError):
    """PHRASE query text could not be turned into terms."""


class IndexWriteError(SpecQueryError):
    """Raised when a field value cannot be written to an index."""
