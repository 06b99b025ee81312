"""
Column Schema
=============

Declared column names, semantic kinds and failure policies for the
NYPD shooting incident table. The conversion functions themselves live in
``preprocessing``; this module only holds the vocabulary they share with
the loader, aggregator and regressor.
"""

from typing import Callable, NamedTuple, Tuple

import pandas as pd

# Raw header names as published
INCIDENT_KEY = "INCIDENT_KEY"
OCCUR_DATE = "OCCUR_DATE"
OCCUR_TIME = "OCCUR_TIME"
BORO = "BORO"
PRECINCT = "PRECINCT"
JURISDICTION_CODE = "JURISDICTION_CODE"
LOCATION_DESC = "LOCATION_DESC"
MURDER_FLAG = "STATISTICAL_MURDER_FLAG"
PERP_AGE_GROUP = "PERP_AGE_GROUP"
PERP_SEX = "PERP_SEX"
PERP_RACE = "PERP_RACE"
VIC_AGE_GROUP = "VIC_AGE_GROUP"
VIC_SEX = "VIC_SEX"
VIC_RACE = "VIC_RACE"
LATITUDE = "Latitude"
LONGITUDE = "Longitude"

# Derived columns
YEAR = "year"
HOUR = "hour"
MONTH = "month"
DERIVED_COLUMNS = (YEAR, HOUR, MONTH)

REQUIRED_COLUMNS = (OCCUR_DATE, OCCUR_TIME, BORO, MURDER_FLAG, LATITUDE, LONGITUDE)

DATE_FORMAT = "%m/%d/%Y"
TIME_FORMAT = "%H:%M:%S"

# Declared total order; UNKNOWN sorts last
AGE_GROUPS = ("<18", "18-24", "25-44", "45-64", "65+", "UNKNOWN")
AGE_UNKNOWN = "UNKNOWN"
AGE_GROUP_DTYPE = pd.CategoricalDtype(categories=list(AGE_GROUPS), ordered=True)

TRUE_TOKENS = frozenset({"true", "t", "y", "yes", "1"})
FALSE_TOKENS = frozenset({"false", "f", "n", "no", "0"})

# Raw markers the publisher uses for a missing value (compared lower-cased)
NULL_TOKENS = frozenset({"", "(null)"})
LOCATION_NULL_TOKENS = NULL_TOKENS | {"none"}

BOROUGHS = ("BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND")

# Failure policies
REJECT = "reject"
SENTINEL = "sentinel"


class ColumnSpec(NamedTuple):
    """
    Declared conversion for one raw column.

    Attributes:
        kind: Semantic type name (date, time, boolean, ordinal, ...)
        converter: Maps a raw string Series to ``(converted, invalid_mask)``
        formatter: Maps a converted Series back to raw strings
        on_error: ``REJECT`` drops invalid rows, ``SENTINEL`` keeps them
            with the converter's fallback value
    """
    kind: str
    converter: Callable[[pd.Series], Tuple[pd.Series, pd.Series]]
    formatter: Callable[[pd.Series], pd.Series]
    on_error: str


def age_group_rank(value: str) -> int:
    """Position of an age group in the declared order."""
    try:
        return AGE_GROUPS.index(value)
    except ValueError:
        raise ValueError(f"Unknown age group: {value!r}. Expected one of {AGE_GROUPS}") from None
