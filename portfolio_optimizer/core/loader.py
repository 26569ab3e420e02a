"""
Data Loader Module
==================

Reads optimizer inputs from spreadsheet files:

1. Holdings: one row per position with columns
   ``symbol``, ``quantity`` and ``average_cost`` (or ``averageCost``)
2. Price tables: an optional date column followed by one column of
   chronological prices per symbol

CSV files are read with pandas; ``.xlsx``/``.xls`` files go through
``pandas.read_excel`` (openpyxl engine for .xlsx).
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from portfolio_optimizer.core.errors import InputValidationError
from portfolio_optimizer.core.models import Holding

PathLike = Union[str, Path]

COST_COLUMNS = ('average_cost', 'averagecost', 'avg_cost', 'cost')
DATE_COLUMNS = ('date', 'datetime', 'timestamp')


def _read_table(file_path: PathLike, sheet: Optional[str] = None) -> pd.DataFrame:
    path = Path(file_path)
    if not path.exists():
        raise InputValidationError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ('.xlsx', '.xlsm', '.xls'):
        return pd.read_excel(path, sheet_name=sheet if sheet is not None else 0)
    if suffix in ('.csv', '.txt'):
        return pd.read_csv(path)
    raise InputValidationError(f"Unsupported file type: {suffix}. Use CSV or Excel")


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    return df


def load_holdings(file_path: PathLike, sheet: Optional[str] = None) -> List[Holding]:
    """
    Load holdings from a CSV or Excel file.

    Args:
        file_path: Path to the file
        sheet: Excel sheet name (default: first sheet)

    Returns:
        List of Holding in file order

    Raises:
        InputValidationError: If required columns are missing or rows are invalid
    """
    df = _normalize_columns(_read_table(file_path, sheet))
    lookup = {c.lower(): c for c in df.columns}

    if 'symbol' not in lookup or 'quantity' not in lookup:
        raise InputValidationError(
            f"Holdings file needs 'symbol' and 'quantity' columns, got {list(df.columns)}"
        )
    cost_col = next((lookup[c] for c in COST_COLUMNS if c in lookup), None)
    if cost_col is None:
        raise InputValidationError("Holdings file needs an 'average_cost' column")

    df = df.dropna(how='all')
    holdings = []
    for row_number, record in enumerate(df.to_dict('records'), start=1):
        symbol = record[lookup['symbol']]
        try:
            quantity = float(record[lookup['quantity']])
            cost = float(record[cost_col])
        except (TypeError, ValueError) as e:
            raise InputValidationError(f"Row {row_number}: quantity and cost must be numeric: {record}") from e
        if pd.isna(symbol) or pd.isna(quantity) or pd.isna(cost):
            raise InputValidationError(f"Row {row_number}: missing values")
        holdings.append(Holding(str(symbol).strip().upper(), quantity, cost))

    if not holdings:
        raise InputValidationError(f"No holdings found in {file_path}")
    return holdings


def load_price_table(file_path: PathLike, sheet: Optional[str] = None) -> Dict[str, List[float]]:
    """
    Load chronological price histories, one column per symbol.

    A leading date column is used to sort rows and then dropped. Missing
    values are removed per column, so symbols may have different lengths.

    Returns:
        Dictionary mapping symbol -> list of prices, oldest first
    """
    df = _normalize_columns(_read_table(file_path, sheet))

    date_col = next((c for c in df.columns if c.lower() in DATE_COLUMNS), None)
    if date_col is not None:
        df[date_col] = pd.to_datetime(df[date_col], errors='coerce')
        df = df.sort_values(date_col).drop(columns=[date_col])

    histories = {}
    for col in df.columns:
        prices = pd.to_numeric(df[col], errors='coerce').dropna()
        if len(prices):
            histories[str(col).strip().upper()] = prices.astype(float).tolist()

    if not histories:
        raise InputValidationError(f"No numeric price columns found in {file_path}")
    return histories


def total_cost_basis(holdings: List[Holding]) -> float:
    """Sum of quantity * average_cost over all holdings."""
    return float(sum(h.cost_basis for h in holdings))
