"""
Test Suite for Data Loader Module
=================================

Tests for configuration loading, CSV retrieval and parsing.
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shooting_report.data_loader import (
    fetch_csv, load_config, load_data, parse_csv, validate_columns,
)
from shooting_report.errors import CSVParseError, RetrievalError, SchemaError

HEADER = "INCIDENT_KEY,OCCUR_DATE,OCCUR_TIME,BORO,STATISTICAL_MURDER_FLAG,Latitude,Longitude"
ROWS = [
    "1,01/15/2020,23:10:00,BRONX,false,40.85,-73.91",
    "2,07/04/2021,00:45:00,BROOKLYN,true,,",
]
CSV_TEXT = "\n".join([HEADER] + ROWS) + "\n"


class TestParseCsv:
    """Tests for parse_csv."""

    def test_fields_stay_strings(self):
        """Numbers and empty fields are not inferred."""
        df = parse_csv(CSV_TEXT)

        assert df.shape == (2, 7)
        assert df.loc[0, "INCIDENT_KEY"] == "1"
        assert df.loc[0, "Latitude"] == "40.85"
        assert df.loc[1, "Latitude"] == ""
        assert df.loc[0, "STATISTICAL_MURDER_FLAG"] == "false"

    def test_empty_input(self):
        """Empty text has no header row."""
        with pytest.raises(CSVParseError, match="empty"):
            parse_csv("")

    def test_malformed_row(self):
        """A row with too many fields is a parse error."""
        with pytest.raises(CSVParseError, match="Malformed"):
            parse_csv("a,b\n1,2\n3,4,5,6\n")

    def test_header_only(self):
        """A header with no rows gives an empty table."""
        df = parse_csv(HEADER + "\n")

        assert len(df) == 0
        assert "BORO" in df.columns


class TestValidateColumns:
    """Tests for validate_columns."""

    def test_missing_required(self):
        df = parse_csv("OCCUR_DATE,BORO\n01/01/2020,BRONX\n")

        with pytest.raises(SchemaError, match="OCCUR_TIME"):
            validate_columns(df)

    def test_returns_extra_columns(self):
        df = parse_csv(CSV_TEXT)

        assert validate_columns(df) == ["INCIDENT_KEY"]


class TestFetchCsv:
    """Tests for fetch_csv with requests mocked out."""

    @patch("shooting_report.data_loader.requests.get")
    def test_success(self, mock_get):
        response = MagicMock()
        response.text = CSV_TEXT
        response.content = CSV_TEXT.encode()
        mock_get.return_value = response

        assert fetch_csv("https://example.org/rows.csv", timeout=5) == CSV_TEXT
        mock_get.assert_called_once_with("https://example.org/rows.csv", timeout=5)

    @patch("shooting_report.data_loader.requests.get")
    def test_http_error(self, mock_get):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
        mock_get.return_value = response

        with pytest.raises(RetrievalError, match="404"):
            fetch_csv("https://example.org/missing.csv")

    @patch("shooting_report.data_loader.requests.get")
    def test_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(RetrievalError, match="connection refused"):
            fetch_csv("https://example.org/rows.csv")


class TestLoadData:
    """Tests for load_data."""

    def test_local_file(self, tmp_path):
        path = tmp_path / "shootings.csv"
        path.write_text(CSV_TEXT, encoding="utf-8")

        df = load_data(str(path))

        assert len(df) == 2
        assert list(df["BORO"]) == ["BRONX", "BROOKLYN"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path / "nope.csv"))

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "partial.csv"
        path.write_text("OCCUR_DATE,BORO\n01/01/2020,BRONX\n", encoding="utf-8")

        with pytest.raises(SchemaError):
            load_data(str(path))

    @patch("shooting_report.data_loader.fetch_csv")
    def test_url_is_fetched(self, mock_fetch):
        mock_fetch.return_value = CSV_TEXT

        df = load_data("https://example.org/rows.csv", timeout=10)

        mock_fetch.assert_called_once_with("https://example.org/rows.csv", timeout=10)
        assert len(df) == 2


class TestLoadConfig:
    """Tests for load_config."""

    def test_load(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "populations:\n  BRONX: 1472654\nregression:\n  reference_hour: 3\n"
        )

        config = load_config(str(path))

        assert config["populations"]["BRONX"] == 1472654
        assert config["regression"]["reference_hour"] == 3

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_shipped_config(self):
        config = load_config(str(Path(__file__).parent.parent / "config" / "config.yaml"))

        assert set(config["populations"]) == {
            "BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND"
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
