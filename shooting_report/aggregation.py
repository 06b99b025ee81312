"""
Aggregation Module
==================

Grouped counts and rates over the typed incident table.

Functions:
    - count_by: Records per value of one column
    - top_n: Most frequent non-null values
    - borough_rates: Counts normalized per 100,000 residents
    - murder_share_by: Incidents, murders and murder share per group
    - year_borough_table: Year × borough crosstab
    - murder_borough_independence: Chi-square test of borough vs murder flag
"""

import logging
from typing import Dict, Any, Mapping

import numpy as np
import pandas as pd
from scipy import stats

from .schema import BORO, HOUR, LOCATION_DESC, MONTH, MURDER_FLAG, VIC_AGE_GROUP, YEAR

logger = logging.getLogger(__name__)

PER_CAPITA_SCALE = 100_000

# 2020 census
DEFAULT_POPULATIONS: Dict[str, int] = {
    "BRONX": 1_472_654,
    "BROOKLYN": 2_736_074,
    "MANHATTAN": 1_694_251,
    "QUEENS": 2_405_464,
    "STATEN ISLAND": 495_747,
}


def count_by(df: pd.DataFrame, column: str, order: str = "key") -> pd.Series:
    """
    Count records per value of ``column``.

    Null values form their own group, so the counts always sum to
    ``len(df)``.

    Args:
        df: Typed incident table
        column: Column to group on
        order: ``"key"`` sorts by value (declared order for ordered
            categoricals, nulls last); ``"count"`` sorts by descending
            count with ties kept in order of first appearance

    Returns:
        Series of counts indexed by value, named ``count``
    """
    if order not in ("key", "count"):
        raise ValueError(f"Unknown order: {order}. Choose from: key, count")

    values = df[column]
    codes, uniques = pd.factorize(values.astype(object), use_na_sentinel=False)
    counts = pd.Series(
        np.bincount(codes, minlength=len(uniques)),
        index=pd.Index(uniques, name=column),
        name="count",
    )

    if order == "count":
        return counts.sort_values(ascending=False, kind="stable")

    if isinstance(values.dtype, pd.CategoricalDtype) and values.dtype.ordered:
        rank = {level: i for i, level in enumerate(values.dtype.categories)}
        return counts.sort_index(
            key=lambda idx: idx.map(lambda v: rank.get(v, len(rank))),
            kind="stable",
        )
    return counts.sort_index(kind="stable")


def top_n(df: pd.DataFrame, column: str, n: int = 10) -> pd.Series:
    """
    The ``n`` most frequent non-null values of ``column``.

    Ties are broken by first appearance in the input.
    """
    counts = count_by(df, column, order="count")
    counts = counts[counts.index.notna()]
    return counts.head(n)


def borough_rates(
    counts: pd.Series,
    populations: Mapping[str, int] = DEFAULT_POPULATIONS
) -> pd.DataFrame:
    """
    Normalize borough counts per 100,000 residents.

    ``rate = count / (population / 100000)``

    Args:
        counts: Incident counts indexed by borough
        populations: Resident population per borough

    Returns:
        DataFrame with ``count``, ``population`` and ``rate_per_100k``

    Raises:
        KeyError: If a borough in ``counts`` has no population
    """
    missing = [b for b in counts.index if b not in populations]
    if missing:
        raise KeyError(f"No population for boroughs: {missing}")

    table = pd.DataFrame({
        "count": counts.astype(int),
        "population": [int(populations[b]) for b in counts.index],
    }, index=counts.index)
    table["rate_per_100k"] = table["count"] / (table["population"] / PER_CAPITA_SCALE)
    return table


def murder_share_by(df: pd.DataFrame, column: str) -> pd.DataFrame:
    """
    Incidents, flagged murders and murder share per group.

    Args:
        df: Typed incident table
        column: Column to group on

    Returns:
        DataFrame with ``incidents``, ``murders`` and ``murder_share``
    """
    grouped = df.groupby(column, observed=True)[MURDER_FLAG]
    table = pd.DataFrame({
        "incidents": grouped.size(),
        "murders": grouped.sum().astype(int),
    })
    table["murder_share"] = table["murders"] / table["incidents"]
    return table


def year_borough_table(df: pd.DataFrame) -> pd.DataFrame:
    """Incident counts with one row per year and one column per borough."""
    return pd.crosstab(df[YEAR], df[BORO].astype(object))


def murder_borough_independence(df: pd.DataFrame) -> Dict[str, Any]:
    """
    Chi-square test of independence between borough and the murder flag.

    Returns:
        Dictionary with ``statistic``, ``p_value`` and ``dof``

    Raises:
        ValueError: If the contingency table is smaller than 2 × 2
    """
    table = pd.crosstab(df[BORO].astype(object), df[MURDER_FLAG])
    if table.shape[0] < 2 or table.shape[1] < 2:
        raise ValueError(
            f"Need at least two boroughs and both flag values, got table of shape {table.shape}"
        )

    statistic, p_value, dof, _ = stats.chi2_contingency(table.values)
    return {
        "statistic": float(statistic),
        "p_value": float(p_value),
        "dof": int(dof),
    }


def summarize_incidents(
    df: pd.DataFrame,
    populations: Mapping[str, int] = DEFAULT_POPULATIONS,
    top: int = 10
) -> Dict[str, Any]:
    """
    Compute every aggregate the report prints.

    Args:
        df: Typed incident table
        populations: Resident population per borough
        top: How many location descriptions to rank

    Returns:
        Dictionary of Series / DataFrames keyed by aggregate name
    """
    logger.info("=" * 60)
    logger.info("COMPUTING AGGREGATES")
    logger.info("=" * 60)

    by_borough = count_by(df, BORO)
    summary = {
        "total": len(df),
        "by_borough": by_borough,
        "by_year": count_by(df, YEAR),
        "by_hour": count_by(df, HOUR),
        "by_month": count_by(df, MONTH),
        "borough_rates": borough_rates(by_borough, populations),
        "murder_share": murder_share_by(df, BORO),
        "year_borough": year_borough_table(df),
    }

    if LOCATION_DESC in df.columns:
        summary["top_locations"] = top_n(df, LOCATION_DESC, n=top)
    if VIC_AGE_GROUP in df.columns:
        summary["by_victim_age"] = count_by(df, VIC_AGE_GROUP)

    try:
        summary["independence"] = murder_borough_independence(df)
    except ValueError as e:
        logger.warning(f"Skipping borough/murder independence test: {e}")
        summary["independence"] = None

    logger.info(f"Aggregated {summary['total']} incidents across {len(by_borough)} boroughs")
    return summary


def print_aggregation_summary(summary: Dict[str, Any]) -> None:
    """
    Print the aggregate tables to console.

    Args:
        summary: Dictionary from summarize_incidents
    """
    print("\n" + "=" * 60)
    print("INCIDENT AGGREGATES")
    print("=" * 60)
    print(f"Total incidents: {summary['total']}")

    print("\nRates per 100,000 residents:")
    print("-" * 40)
    print(summary["borough_rates"].round(1).to_string())

    print("\nMurder share by borough:")
    print("-" * 40)
    print(summary["murder_share"].round(3).to_string())

    print("\nIncidents per year:")
    print("-" * 40)
    print(summary["by_year"].to_string())

    if "top_locations" in summary:
        print("\nTop location descriptions:")
        print("-" * 40)
        print(summary["top_locations"].to_string())

    if summary.get("independence"):
        result = summary["independence"]
        print(f"\nBorough vs murder flag: chi2={result['statistic']:.2f}, "
              f"dof={result['dof']}, p={result['p_value']:.4f}")

    print("=" * 60 + "\n")
