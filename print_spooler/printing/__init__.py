"""
Printing subsystem for the print spooler.

This package groups printing-related functionality:

- source: page sources (plain text) and the suffix-keyed source registry
- render: pagination and Pillow rasterization of text pages
- assembler: the virtual printer that stages pages and builds the PDF
- worker: the two-stage job pipeline and its background thread

For convenience, common names are re-exported for easy import.
"""

from .assembler import *
from .render import *
from .source import *
from .worker import *
