"""
Data Loader Module
==================

Handles configuration, CSV retrieval and parsing into an untyped table.

Functions:
    - load_config: Load YAML configuration file
    - fetch_csv: Download the CSV resource over HTTP
    - parse_csv: Parse delimited text into string columns
    - load_data: Fetch or read a source and validate its headers
    - validate_columns: Check that required headers are present
"""

import io
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, List

import pandas as pd
import requests
import yaml

from .errors import CSVParseError, RetrievalError, SchemaError
from .schema import REQUIRED_COLUMNS

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL = (
    "https://data.cityofnewyork.us/api/views/833y-pr7n/rows.csv?accessType=DOWNLOAD"
)


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {config_path}")
    return config


def fetch_csv(url: str, timeout: float = 60.0) -> str:
    """
    Download a CSV resource and return its text.

    Args:
        url: Resource URL
        timeout: Seconds to wait for the server

    Returns:
        Response body decoded as text

    Raises:
        RetrievalError: On any transport failure or non-2xx status
    """
    logger.info(f"Fetching {url}")
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise RetrievalError(f"Could not fetch {url}: {e}") from e

    logger.info(f"Fetched {len(response.content) / 1024:.1f} KB from {url}")
    return response.text


def parse_csv(text: str) -> pd.DataFrame:
    """
    Parse delimited text into a table of string fields keyed by header.

    No type inference is done here: every field stays a string and empty
    fields stay empty strings. Typing is the preprocessing step's job.

    Args:
        text: CSV text with a header row

    Returns:
        DataFrame with object (str) columns

    Raises:
        CSVParseError: If the text is empty or malformed
    """
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            na_filter=False,
        )
    except pd.errors.EmptyDataError as e:
        raise CSVParseError("CSV input is empty (no header row)") from e
    except pd.errors.ParserError as e:
        raise CSVParseError(f"Malformed CSV: {e}") from e

    # Short rows come back as NaN even with na_filter off
    df = df.fillna("")
    logger.info(f"Parsed CSV: {df.shape[0]} rows × {df.shape[1]} columns")
    return df


def validate_columns(
    df: pd.DataFrame,
    required: Iterable[str] = REQUIRED_COLUMNS
) -> List[str]:
    """
    Check that every required header is present.

    Args:
        df: Parsed table
        required: Header names that must exist

    Returns:
        List of optional columns present beyond the required ones

    Raises:
        SchemaError: If any required header is missing
    """
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise SchemaError(
            f"CSV is missing required columns: {missing}. Found: {list(df.columns)}"
        )
    return [col for col in df.columns if col not in required]


def load_data(source: str, timeout: float = 60.0) -> pd.DataFrame:
    """
    Load the incident table from a URL or a local CSV file.

    Args:
        source: ``http(s)://`` URL or path to a CSV file
        timeout: HTTP timeout in seconds (URLs only)

    Returns:
        Untyped DataFrame with the required headers present

    Raises:
        FileNotFoundError: If a local path doesn't exist
        RetrievalError: If the download fails
        CSVParseError: If the CSV is malformed
        SchemaError: If required headers are missing
    """
    if source.startswith(("http://", "https://")):
        text = fetch_csv(source, timeout=timeout)
    else:
        file_path = Path(source)
        if not file_path.exists():
            raise FileNotFoundError(f"Data file not found: {file_path}")
        text = file_path.read_text(encoding="utf-8")
        logger.info(f"Read {file_path}")

    df = parse_csv(text)
    extra = validate_columns(df)
    logger.info(f"Required columns present; {len(extra)} additional columns")
    return df


def print_data_summary(df: pd.DataFrame) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
    """
    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Memory Usage: {df.memory_usage(deep=True).sum() / 1024:.2f} KB")
    print("\nColumn Information:")
    print("-" * 40)

    for col in df.columns:
        dtype = df[col].dtype
        non_null = df[col].count()
        null_pct = (1 - non_null / len(df)) * 100 if len(df) else 0.0
        print(f"  {col}: {dtype} | {non_null} non-null ({null_pct:.1f}% missing)")

    print("=" * 60 + "\n")
