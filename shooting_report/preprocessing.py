"""
Data Preprocessing Module
=========================

Turns the untyped incident table into a typed one, following the column
schema declared in ``COLUMN_SCHEMA``.

Functions:
    - normalize_incidents: Convert every declared column and derive year/hour/month
    - serialize_records: Render a typed table back to raw string fields
    - unrecognized_age_values: Raw age-group values outside the declared levels
    - parse_dates, parse_times, coerce_murder_flag, to_age_group,
      intern_category, optional_category, optional_location, to_borough,
      parse_coordinate: column converters
"""

import logging
from datetime import time
from typing import Dict, List, Tuple

import pandas as pd

from .data_loader import validate_columns
from .schema import (
    AGE_GROUP_DTYPE, AGE_GROUPS, AGE_UNKNOWN, BORO, BOROUGHS, DATE_FORMAT,
    DERIVED_COLUMNS, FALSE_TOKENS, HOUR, INCIDENT_KEY, JURISDICTION_CODE, LATITUDE,
    LOCATION_DESC, LOCATION_NULL_TOKENS, LONGITUDE, MONTH, MURDER_FLAG, NULL_TOKENS,
    OCCUR_DATE, OCCUR_TIME, PERP_AGE_GROUP, PERP_RACE, PERP_SEX, PRECINCT, REJECT,
    SENTINEL, TIME_FORMAT, TRUE_TOKENS, VIC_AGE_GROUP, VIC_RACE, VIC_SEX, YEAR,
    ColumnSpec,
)

logger = logging.getLogger(__name__)

Conversion = Tuple[pd.Series, pd.Series]


def _clean(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip()


def _no_errors(series: pd.Series) -> pd.Series:
    return pd.Series(False, index=series.index)


# ---------------------------------------------------------------------------
# Converters: raw strings -> (typed values, invalid mask)
# ---------------------------------------------------------------------------

def keep_text(series: pd.Series) -> Conversion:
    """Identifier text, stripped and otherwise unchanged."""
    return _clean(series), _no_errors(series)


def parse_dates(series: pd.Series) -> Conversion:
    """Parse ``MM/DD/YYYY`` text. Unparseable values become NaT."""
    parsed = pd.to_datetime(_clean(series), format=DATE_FORMAT, errors="coerce")
    return parsed, parsed.isna()


def parse_times(series: pd.Series) -> Conversion:
    """Parse ``HH:MM:SS`` text into ``datetime.time`` values."""
    parsed = pd.to_datetime(_clean(series), format=TIME_FORMAT, errors="coerce")
    invalid = parsed.isna()
    return parsed.dt.time, invalid


def coerce_murder_flag(series: pd.Series) -> Conversion:
    """
    Coerce the statistical-murder flag to a boolean.

    Accepts true/false, t/f, y/n, yes/no and 1/0 in any case. Anything
    else is marked invalid and left as <NA>.
    """
    tokens = _clean(series).str.lower()
    flags = pd.Series(pd.NA, index=series.index, dtype="boolean")
    flags[tokens.isin(list(TRUE_TOKENS))] = True
    flags[tokens.isin(list(FALSE_TOKENS))] = False
    return flags, flags.isna()


def to_age_group(series: pd.Series) -> Conversion:
    """Map raw age-group text onto the ordered ``AgeGroup`` levels."""
    cleaned = _clean(series).str.upper()
    known = cleaned.isin(AGE_GROUPS)
    groups = cleaned.where(known, AGE_UNKNOWN).astype(AGE_GROUP_DTYPE)
    return groups, ~known


def intern_category(series: pd.Series) -> Conversion:
    """Categorical column that keeps every value, empty ones included."""
    return _clean(series).astype("category"), _no_errors(series)


def optional_category(series: pd.Series, null_tokens=NULL_TOKENS) -> Conversion:
    """Categorical column where the publisher's null markers become real nulls."""
    cleaned = _clean(series)
    is_null = cleaned.str.lower().isin(list(null_tokens))
    return cleaned.mask(is_null).astype("category"), is_null


def optional_location(series: pd.Series) -> Conversion:
    """Location description; ``NONE`` is treated as missing too."""
    return optional_category(series, null_tokens=LOCATION_NULL_TOKENS)


def to_borough(series: pd.Series) -> Conversion:
    """Borough name, upper-cased. Blank or unknown boroughs are invalid."""
    cleaned = _clean(series).str.upper()
    known = cleaned.isin(BOROUGHS)
    return cleaned.where(known).astype("category"), ~known


def parse_coordinate(series: pd.Series) -> Conversion:
    """Decimal degrees as float. Empty or unparseable text becomes NaN."""
    values = pd.to_numeric(_clean(series), errors="coerce").astype(float)
    return values, values.isna()


# ---------------------------------------------------------------------------
# Formatters: typed values -> raw strings
# ---------------------------------------------------------------------------

def format_text(series: pd.Series) -> pd.Series:
    return series.astype(object).where(series.notna(), "").astype(str)


def format_dates(series: pd.Series) -> pd.Series:
    return series.dt.strftime(DATE_FORMAT).fillna("")


def format_times(series: pd.Series) -> pd.Series:
    return series.map(lambda t: t.strftime(TIME_FORMAT) if isinstance(t, time) else "")


def format_flags(series: pd.Series) -> pd.Series:
    return series.map(lambda flag: "true" if flag else "false")


def format_coordinates(series: pd.Series) -> pd.Series:
    """Shortest round-trip float text; trailing zeros and excess digits are not kept."""
    return series.map(lambda v: "" if pd.isna(v) else repr(float(v)))


def _categorical(converter=intern_category, on_error: str = SENTINEL) -> ColumnSpec:
    return ColumnSpec("categorical", converter, format_text, on_error)


COLUMN_SCHEMA: Dict[str, ColumnSpec] = {
    INCIDENT_KEY: ColumnSpec("text", keep_text, format_text, SENTINEL),
    OCCUR_DATE: ColumnSpec("date", parse_dates, format_dates, REJECT),
    OCCUR_TIME: ColumnSpec("time", parse_times, format_times, REJECT),
    BORO: _categorical(to_borough, REJECT),
    PRECINCT: _categorical(),
    JURISDICTION_CODE: _categorical(optional_category),
    LOCATION_DESC: _categorical(optional_location),
    MURDER_FLAG: ColumnSpec("boolean", coerce_murder_flag, format_flags, REJECT),
    PERP_AGE_GROUP: ColumnSpec("ordinal", to_age_group, format_text, SENTINEL),
    VIC_AGE_GROUP: ColumnSpec("ordinal", to_age_group, format_text, SENTINEL),
    PERP_SEX: _categorical(optional_category),
    PERP_RACE: _categorical(optional_category),
    VIC_SEX: _categorical(optional_category),
    VIC_RACE: _categorical(optional_category),
    LATITUDE: ColumnSpec("float", parse_coordinate, format_coordinates, SENTINEL),
    LONGITUDE: ColumnSpec("float", parse_coordinate, format_coordinates, SENTINEL),
}


def unrecognized_age_values(raw: pd.DataFrame) -> Dict[str, List[str]]:
    """
    Find raw age-group values that are not one of the declared levels.

    Args:
        raw: Untyped incident table

    Returns:
        Mapping of column name to the sorted distinct unrecognized values,
        only for columns that have any
    """
    report = {}
    for column in (PERP_AGE_GROUP, VIC_AGE_GROUP):
        if column not in raw.columns:
            continue
        values = _clean(raw[column]).str.upper()
        unknown = sorted(set(values[~values.isin(AGE_GROUPS)]))
        if unknown:
            report[column] = unknown
    return report


def normalize_incidents(raw: pd.DataFrame) -> pd.DataFrame:
    """
    Apply the declared conversion to every schema column.

    The input table is not modified. Rows with an unparseable value in a
    ``REJECT`` column are dropped; ``SENTINEL`` columns keep the row with
    the converter's fallback (null, NaN or ``UNKNOWN``).

    Args:
        raw: Untyped incident table from ``load_data``

    Returns:
        New typed DataFrame with derived ``year``, ``hour`` and ``month``
        columns. ``attrs["rejected_rows"]`` holds the number of dropped rows.

    Raises:
        SchemaError: If required columns are missing
    """
    validate_columns(raw)

    logger.info("=" * 60)
    logger.info("NORMALIZING INCIDENT TABLE")
    logger.info("=" * 60)

    typed = raw.copy()
    rejected = pd.Series(False, index=raw.index)

    for column, spec in COLUMN_SCHEMA.items():
        if column not in typed.columns:
            continue

        converted, invalid = spec.converter(typed[column])
        n_invalid = int(invalid.sum())

        if spec.on_error == REJECT:
            rejected |= invalid
            if n_invalid:
                logger.warning(f"{column}: {n_invalid} rows with unparseable {spec.kind} values rejected")
        elif n_invalid:
            logger.info(f"{column}: {n_invalid} values replaced by {spec.kind} sentinel")

        typed[column] = converted

    for column, values in unrecognized_age_values(raw).items():
        logger.warning(f"{column}: unrecognized age groups mapped to {AGE_UNKNOWN}: {values}")

    typed = typed.loc[~rejected].copy()
    typed[MURDER_FLAG] = typed[MURDER_FLAG].astype(bool)

    typed[YEAR] = typed[OCCUR_DATE].dt.year.astype(int)
    typed[MONTH] = typed[OCCUR_DATE].dt.month.astype(int)
    typed[HOUR] = typed[OCCUR_TIME].map(lambda t: t.hour).astype(int)

    typed.attrs["rejected_rows"] = int(rejected.sum())

    logger.info(f"Typed table: {len(typed)} rows kept, {typed.attrs['rejected_rows']} rejected")
    return typed


def serialize_records(df: pd.DataFrame) -> pd.DataFrame:
    """
    Render a typed table back to raw string fields.

    Derived columns are dropped. Nulls become empty strings, dates
    ``MM/DD/YYYY``, times ``HH:MM:SS`` and flags ``true``/``false``.

    Args:
        df: Table produced by ``normalize_incidents``

    Returns:
        DataFrame of strings with the original column order
    """
    raw = pd.DataFrame(index=df.index)
    for column in df.columns:
        if column in DERIVED_COLUMNS:
            continue
        spec = COLUMN_SCHEMA.get(column)
        raw[column] = spec.formatter(df[column]) if spec else df[column]
    return raw


def print_preprocessing_summary(df: pd.DataFrame) -> None:
    """
    Print a summary of the typed table.

    Args:
        df: Table produced by ``normalize_incidents``
    """
    print("\n" + "=" * 50)
    print("PREPROCESSING SUMMARY")
    print("=" * 50)
    print(f"Rows kept: {len(df)}")
    print(f"Rows rejected: {df.attrs.get('rejected_rows', 0)}")
    if len(df):
        print(f"Date range: {df[OCCUR_DATE].min():%Y-%m-%d} to {df[OCCUR_DATE].max():%Y-%m-%d}")
        print(f"Murders flagged: {int(df[MURDER_FLAG].sum())}")
        print(f"Missing coordinates: {int(df[LATITUDE].isna().sum())}")
    print("\nColumn types:")
    for col in df.columns:
        print(f"  {col}: {df[col].dtype}")
    print("=" * 50 + "\n")
