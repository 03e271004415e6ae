"""
Compiler output handling for tscwatch.

Classifies tsc watch-mode output lines and echoes them to the terminal.
"""

from tscwatch.output.classifier import (
    ClassifierPatterns,
    LineClassification,
    LineClassifier,
    classify,
)
from tscwatch.output.display import (
    OutputPrinter,
    delete_clear,
    manipulate,
    strip_ansi,
)

__all__ = [
    "ClassifierPatterns",
    "LineClassification",
    "LineClassifier",
    "OutputPrinter",
    "classify",
    "delete_clear",
    "manipulate",
    "strip_ansi",
]
