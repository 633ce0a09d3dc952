"""Exceptions raised by the quote-graph system."""


class QuoteGraphError(Exception):
    """Base class for quote-graph errors."""


class EngineUnavailableError(QuoteGraphError, RuntimeError):
    """The aggregation engine could not be started."""


class MalformedRecordError(QuoteGraphError, ValueError):
    """A quote record is missing its stock or timestamp, or cannot be parsed."""


class SchemaMismatchError(QuoteGraphError, ValueError):
    """A schema or view refers to fields the store was not created with."""
