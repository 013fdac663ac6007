"""
Reporting module for the listing engine.

Console reports over stored results, and the batch-run CLI.

Usage:
    python -m reporting.cli run west-village
    python -m reporting.cli results --classification undervalued
"""
