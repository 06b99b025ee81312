"""
Exceptions raised by the report pipeline.

Retrieval, parse and schema errors abort the run. A DegenerateFitError
only aborts the model that raised it.
"""


class ReportError(Exception):
    """Base class for all report errors."""


class RetrievalError(ReportError):
    """The CSV resource could not be fetched (network or HTTP error)."""


class CSVParseError(ReportError, ValueError):
    """The fetched text is not valid delimited data."""


class SchemaError(ReportError, ValueError):
    """Required columns are missing from the parsed table."""


class DegenerateFitError(ReportError):
    """The regression design matrix is rank-deficient."""
