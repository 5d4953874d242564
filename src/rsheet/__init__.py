"""rsheet — an in-memory spreadsheet served over a line protocol."""

__version__ = "0.1.0"
