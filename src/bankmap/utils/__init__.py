"""Utility functions for bankmap."""

from bankmap.utils.amount_parser import parse_amount
from bankmap.utils.csv_reader import read_csv_rows
from bankmap.utils.date_parser import parse_date

__all__ = ["parse_date", "parse_amount", "read_csv_rows"]
