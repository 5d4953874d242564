"""Command parsing, evaluation, dispatch and the cell store."""
