"""Read a CSV export into raw string rows."""

import csv
from pathlib import Path

SNIFF_SAMPLE_SIZE = 4096
DELIMITERS = ",;\t|"


def read_csv_rows(csv_file_path: str | Path) -> list[list[str]]:
    """Read every row of a CSV file as a list of cells.

    The delimiter is sniffed from the start of the file, falling back to a
    comma. Fully blank lines are dropped; the parser skips blank rows too,
    but dropping them here keeps the header row at index 0.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    csv_path = Path(csv_file_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(SNIFF_SAMPLE_SIZE)
        f.seek(0)
        try:
            delimiter = csv.Sniffer().sniff(sample, delimiters=DELIMITERS).delimiter
        except csv.Error:
            delimiter = ","
        reader = csv.reader(f, delimiter=delimiter)
        return [row for row in reader if any(cell.strip() for cell in row)]
