"""Keep navigable markers in sync with CodeMarks comments in source files."""

__version__ = "0.1.0"
