"""PDF rendering of filled documents."""
from cv_docgen.export.converter import (
    ConversionFailure,
    ConversionOptions,
    ConversionResult,
    ConversionSuccess,
    FormatConverter,
)

__all__ = [
    "ConversionFailure",
    "ConversionOptions",
    "ConversionResult",
    "ConversionSuccess",
    "FormatConverter",
]
