"""
Workbook Parser
===============
Reads the three-sheet VaR upload workbook into ``VarUploadData`` and
writes a pre-filled template.

Sheets:
    Portfolio_Holdings:  Asset_Name, Asset_Type, Quantity, Current_Price, Notes
    Price_History:       Date, <one column per asset>
    Configuration:       Parameter, Value[, Description]

Column headers are matched case-insensitively with spaces or
underscores. Blank and non-numeric price cells are gaps.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import numpy as np
import pandas as pd
from pydantic import ValidationError

from var_engine.config import (
    CONFIGURATION_SHEET,
    DEFAULT_MIN_DATA_POINTS_DAILY,
    DEFAULT_MIN_DATA_POINTS_MONTHLY,
    HOLDINGS_SHEET,
    PRICE_HISTORY_SHEET,
    REQUIRED_SHEETS,
)
from var_engine.exceptions import InputValidationError
from var_engine.models import VarUploadData, describe_validation_error

logger = logging.getLogger(__name__)

HOLDING_COLUMNS = ("asset_name", "asset_type", "quantity", "current_price", "notes")

CONFIG_PARAMETERS = (
    "data_frequency",
    "confidence_level",
    "time_horizon_days",
    "currency",
    "min_data_points_daily",
    "min_data_points_monthly",
    "min_data_points_weekly",
    "bond_price_quote",
)


def _normalise(label: Any) -> str:
    return "_".join(str(label).strip().lower().split())


def _scalar(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, str):
        return value.strip()
    return value


def _label(value: Any) -> str:
    """Text form of a name cell; numeric codes such as 1001 keep no decimal."""
    value = _scalar(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_date(value: Any) -> pd.Timestamp:
    """Parse an Excel date cell, a DD-MMM-YYYY string or an ISO date."""
    value = _scalar(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Excel serial day number
        return pd.Timestamp("1899-12-30") + pd.to_timedelta(float(value), unit="D")
    if isinstance(value, str):
        text = value.strip()
        for fmt in ("%d-%b-%Y", "%Y-%m-%d", "%d/%m/%Y"):
            try:
                return pd.to_datetime(text, format=fmt)
            except ValueError:
                continue
    try:
        parsed = pd.Timestamp(value)
    except (ValueError, TypeError) as exc:
        raise InputValidationError([f"Unrecognised date {value!r}"]) from exc
    if pd.isna(parsed):
        raise InputValidationError([f"Unrecognised date {value!r}"])
    return parsed


def parse_holdings(sheet: pd.DataFrame) -> List[Dict[str, Any]]:
    """Holding records from the Portfolio_Holdings sheet."""
    frame = sheet.rename(columns=_normalise).dropna(how="all")
    missing = [c for c in HOLDING_COLUMNS[:4] if c not in frame.columns]
    if missing:
        raise InputValidationError(
            [f"{HOLDINGS_SHEET} sheet is missing columns: {', '.join(missing)}"]
        )

    for column in ("quantity", "current_price"):
        frame[column] = pd.to_numeric(frame[column], errors="coerce")

    holdings = []
    for _, row in frame.iterrows():
        record = {
            column: _scalar(row[column])
            for column in HOLDING_COLUMNS
            if column in frame.columns and not pd.isna(row[column])
        }
        # names must match the Price_History headers, which are always text
        for column in ("asset_name", "notes"):
            if column in record:
                record[column] = _label(record[column])
        holdings.append(record)
    return holdings


def parse_price_history(sheet: pd.DataFrame) -> List[Dict[str, Any]]:
    """Price rows from the Price_History sheet; rows without a date are skipped."""
    date_columns = [c for c in sheet.columns if _normalise(c) == "date"]
    if not date_columns:
        raise InputValidationError([f"{PRICE_HISTORY_SHEET} sheet has no Date column"])
    date_column = date_columns[0]

    asset_columns = [
        c for c in sheet.columns
        if c != date_column and not str(c).startswith("Unnamed")
    ]
    prices = sheet[asset_columns].apply(pd.to_numeric, errors="coerce")

    rows, errors = [], []
    for position, (idx, raw_date) in enumerate(sheet[date_column].items()):
        if pd.isna(raw_date):
            continue
        try:
            on_date = parse_date(raw_date).date()
        except InputValidationError:
            # header is spreadsheet row 1
            errors.append(
                f"{PRICE_HISTORY_SHEET} row {position + 2}: unrecognised date {raw_date!r}"
            )
            continue
        values = prices.loc[idx]
        rows.append({
            "date": on_date,
            "prices": {
                _label(name): (None if pd.isna(price) else float(price))
                for name, price in values.items()
            },
        })
    if errors:
        raise InputValidationError(errors)
    return rows


def parse_configuration(sheet: pd.DataFrame) -> Dict[str, Any]:
    """Configuration settings from Parameter / Value rows; unknown keys ignored."""
    frame = sheet.rename(columns=_normalise)
    if "parameter" not in frame.columns or "value" not in frame.columns:
        raise InputValidationError(
            [f"{CONFIGURATION_SHEET} sheet needs Parameter and Value columns"]
        )

    settings = {}
    for _, row in frame.iterrows():
        if pd.isna(row["parameter"]) or pd.isna(row["value"]):
            continue
        key = _normalise(row["parameter"])
        if key in CONFIG_PARAMETERS:
            settings[key] = _scalar(row["value"])
        else:
            logger.debug("Ignoring unknown configuration parameter %r", key)
    return settings


def parse_var_workbook(path: Union[str, Path]) -> VarUploadData:
    """
    Parse an uploaded VaR workbook.

    Parameters
    ----------
    path : str or Path
        Location of the .xlsx file.

    Returns
    -------
    VarUploadData
        Holdings, price history and configuration.

    Raises
    ------
    InputValidationError
        If a required sheet or column is missing, or a row cannot be
        turned into a holding / price row / configuration.
    """
    sheets = pd.read_excel(path, sheet_name=None)

    missing = [name for name in REQUIRED_SHEETS if name not in sheets]
    if missing:
        raise InputValidationError([f"Missing required sheets: {', '.join(missing)}"])

    holdings = parse_holdings(sheets[HOLDINGS_SHEET])
    price_history = parse_price_history(sheets[PRICE_HISTORY_SHEET])
    config = parse_configuration(sheets[CONFIGURATION_SHEET])

    if not holdings:
        raise InputValidationError(["No valid portfolio holdings found"])
    if not price_history:
        raise InputValidationError(["No valid price history found"])

    try:
        upload = VarUploadData.model_validate(
            {"holdings": holdings, "price_history": price_history, "config": config}
        )
    except ValidationError as exc:
        raise InputValidationError(describe_validation_error(exc)) from exc

    logger.info(
        "Parsed %s: %d holdings, %d price rows",
        path, len(upload.holdings), len(upload.price_history),
    )
    return upload


def write_var_template(path: Union[str, Path], n_days: int = 260, seed: int = 42) -> Path:
    """
    Write a sample upload workbook with synthetic price history.

    Parameters
    ----------
    path : str or Path
        Destination .xlsx file.
    n_days : int
        Number of business days of price history.
    seed : int
        Seed for the synthetic random walk.

    Returns
    -------
    Path
        The written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    holdings = pd.DataFrame(
        [
            ["NGN 10Y Bond", "Bond", 1_000_000, 98.50, "Units of face value 100"],
            ["NGN 5Y T-Bill", "Bond", 500_000, 99.20, "Units of face value 100"],
            ["Dangote Cement", "Equity", 100_000, 285.00, "Shares"],
            ["Access Bank", "Equity", 2_500_000, 12.50, "Shares"],
        ],
        columns=["Asset_Name", "Asset_Type", "Quantity", "Current_Price", "Notes"],
    )

    rng = np.random.default_rng(seed)
    start_prices = holdings["Current_Price"].to_numpy(dtype=float)
    daily_vol = np.array([0.003, 0.001, 0.018, 0.025])
    shocks = rng.normal(0.0, daily_vol, size=(n_days - 1, len(daily_vol)))
    paths = start_prices * np.vstack([np.ones(len(daily_vol)), np.cumprod(1 + shocks, axis=0)])

    history = pd.DataFrame(
        np.round(paths, 4),
        columns=holdings["Asset_Name"].tolist(),
        index=pd.bdate_range(end="2024-12-31", periods=n_days),
    )
    history.index.name = "Date"
    history = history.reset_index()
    history["Date"] = history["Date"].dt.strftime("%d-%b-%Y")

    configuration = pd.DataFrame(
        [
            ["Data_Frequency", "Daily", "Daily, Weekly, or Monthly"],
            ["Confidence_Level", "95%", "90%, 95%, 99%, or 99.9%"],
            ["Time_Horizon_Days", 1, "Number of days for VaR calculation"],
            ["Currency", "NGN", "Base currency for all positions"],
            ["Min_Data_Points_Daily", DEFAULT_MIN_DATA_POINTS_DAILY,
             "Minimum historical observations for daily data"],
            ["Min_Data_Points_Monthly", DEFAULT_MIN_DATA_POINTS_MONTHLY,
             "Minimum historical observations for monthly data"],
        ],
        columns=["Parameter", "Value", "Description"],
    )

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        holdings.to_excel(writer, sheet_name=HOLDINGS_SHEET, index=False)
        history.to_excel(writer, sheet_name=PRICE_HISTORY_SHEET, index=False)
        configuration.to_excel(writer, sheet_name=CONFIGURATION_SHEET, index=False)

    logger.info("Wrote VaR template to %s", path)
    return path
