"""
Test Suite for Preprocessing Module
===================================

Tests for column conversion, derived columns and serialization.
"""

from datetime import time

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shooting_report.errors import SchemaError
from shooting_report.preprocessing import (
    coerce_murder_flag, format_coordinates, normalize_incidents, optional_category,
    optional_location, parse_coordinate, parse_times, serialize_records,
    to_age_group, to_borough, unrecognized_age_values,
)
from shooting_report.schema import AGE_GROUP_DTYPE, age_group_rank

COLUMNS = [
    "INCIDENT_KEY", "OCCUR_DATE", "OCCUR_TIME", "BORO", "PRECINCT",
    "JURISDICTION_CODE", "LOCATION_DESC", "STATISTICAL_MURDER_FLAG",
    "PERP_AGE_GROUP", "PERP_SEX", "PERP_RACE", "VIC_AGE_GROUP", "VIC_SEX",
    "VIC_RACE", "Latitude", "Longitude",
]

ROWS = [
    ["101", "01/15/2020", "23:10:00", "BRONX", "44", "0", "MULTI DWELL - PUBLIC HOUS",
     "false", "18-24", "M", "BLACK", "25-44", "M", "BLACK", "40.85100323", "-73.91057539"],
    ["102", "07/04/2021", "00:45:00", "BROOKLYN", "75", "0", "",
     "true", "", "", "", "<18", "F", "WHITE HISPANIC", "40.6676", "-73.8916"],
    ["103", "12/31/2021", "12:00:00", "QUEENS", "113", "2", "GROCERY/BODEGA",
     "Y", "1020", "(null)", "(null)", "65+", "M", "ASIAN / PACIFIC ISLANDER", "", ""],
    # unparseable date
    ["104", "13/45/2021", "08:00:00", "QUEENS", "113", "0", "",
     "false", "25-44", "M", "BLACK", "25-44", "M", "BLACK", "40.7", "-73.8"],
    # unparseable time
    ["105", "03/03/2022", "25:99:00", "MANHATTAN", "25", "0", "",
     "false", "25-44", "M", "BLACK", "25-44", "M", "BLACK", "40.8", "-73.9"],
    # unparseable murder flag
    ["106", "03/03/2022", "10:00:00", "MANHATTAN", "25", "0", "",
     "maybe", "25-44", "M", "BLACK", "25-44", "M", "BLACK", "40.8", "-73.9"],
]


def make_raw(rows=ROWS) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=COLUMNS)


class TestNormalizeIncidents:
    """Tests for normalize_incidents."""

    @pytest.fixture
    def raw(self):
        """Untyped table as parse_csv would return it."""
        return make_raw()

    @pytest.fixture
    def typed(self, raw):
        return normalize_incidents(raw)

    def test_input_not_modified(self, raw):
        """Normalization returns a new table."""
        before = raw.copy()
        typed = normalize_incidents(raw)

        pd.testing.assert_frame_equal(raw, before)
        assert typed is not raw

    def test_rejected_rows(self, typed):
        """Bad date, time and murder flag rows are dropped."""
        assert len(typed) == 3
        assert typed.attrs["rejected_rows"] == 3
        assert list(typed["INCIDENT_KEY"]) == ["101", "102", "103"]

    def test_derived_columns(self, typed):
        assert list(typed["year"]) == [2020, 2021, 2021]
        assert list(typed["hour"]) == [23, 0, 12]
        assert list(typed["month"]) == [1, 7, 12]

    def test_derived_ranges(self, typed):
        """year matches the date; hour and month stay in range."""
        assert (typed["year"] == typed["OCCUR_DATE"].dt.year).all()
        assert typed["hour"].between(0, 23).all()
        assert typed["month"].between(1, 12).all()

    def test_time_values(self, typed):
        assert typed["OCCUR_TIME"].iloc[0] == time(23, 10)

    def test_murder_flag(self, typed):
        assert typed["STATISTICAL_MURDER_FLAG"].dtype == bool
        assert list(typed["STATISTICAL_MURDER_FLAG"]) == [False, True, True]

    def test_location_null_sentinel(self, typed):
        """An empty location description becomes a real null."""
        location = typed["LOCATION_DESC"]
        assert location.iloc[0] == "MULTI DWELL - PUBLIC HOUS"
        assert pd.isna(location.iloc[1])
        assert isinstance(location.dtype, pd.CategoricalDtype)

    def test_age_groups(self, typed):
        """Unrecognized and empty age groups map to UNKNOWN."""
        perp = typed["PERP_AGE_GROUP"]
        assert perp.dtype == AGE_GROUP_DTYPE
        assert list(perp) == ["18-24", "UNKNOWN", "UNKNOWN"]

    def test_missing_coordinates(self, typed):
        assert typed["Latitude"].iloc[0] == pytest.approx(40.85100323)
        assert np.isnan(typed["Latitude"].iloc[2])
        assert np.isnan(typed["Longitude"].iloc[2])

    def test_categorical_columns(self, typed):
        for column in ("BORO", "PRECINCT", "VIC_SEX", "VIC_RACE"):
            assert isinstance(typed[column].dtype, pd.CategoricalDtype), column

    def test_missing_required_column(self, raw):
        with pytest.raises(SchemaError, match="OCCUR_TIME"):
            normalize_incidents(raw.drop(columns=["OCCUR_TIME"]))

    def test_optional_columns_may_be_absent(self, raw):
        typed = normalize_incidents(raw[["OCCUR_DATE", "OCCUR_TIME", "BORO",
                                         "STATISTICAL_MURDER_FLAG", "Latitude", "Longitude"]])

        assert len(typed) == 3
        assert "LOCATION_DESC" not in typed.columns

    def test_empty_table(self):
        typed = normalize_incidents(pd.DataFrame(columns=COLUMNS))

        assert len(typed) == 0
        assert {"year", "hour", "month"} <= set(typed.columns)


class TestConverters:
    """Tests for the individual column converters."""

    def test_murder_flag_tokens(self):
        flags, invalid = coerce_murder_flag(
            pd.Series(["TRUE", "f", "Y", "no", "1", "0", " True "])
        )

        assert list(flags) == [True, False, True, False, True, False, True]
        assert not invalid.any()

    def test_murder_flag_invalid(self):
        _, invalid = coerce_murder_flag(pd.Series(["maybe", "", "true"]))

        assert list(invalid) == [True, True, False]

    def test_parse_times(self):
        times, invalid = parse_times(pd.Series(["19:58:00", "00:00:00", "noon"]))

        assert times.iloc[0] == time(19, 58)
        assert times.iloc[1] == time(0, 0)
        assert list(invalid) == [False, False, True]

    def test_to_age_group_case(self):
        groups, invalid = to_age_group(pd.Series(["unknown", "65+", "940"]))

        assert list(groups) == ["UNKNOWN", "65+", "UNKNOWN"]
        assert list(invalid) == [False, False, True]

    def test_optional_category_null_markers(self):
        values, is_null = optional_category(pd.Series(["M", "(null)", "", "(NULL)", "NA"]))

        assert values.iloc[0] == "M"
        assert values.iloc[4] == "NA"
        assert list(is_null) == [False, True, True, True, False]

    def test_location_none_is_null(self):
        values, is_null = optional_location(pd.Series(["STREET", "NONE", "(null)", ""]))

        assert values.iloc[0] == "STREET"
        assert values.isna().tolist() == [False, True, True, True]
        assert list(is_null) == [False, True, True, True]

    def test_to_borough(self):
        boroughs, invalid = to_borough(pd.Series(["BRONX", " staten island ", "", "ATLANTIS"]))

        assert list(boroughs[:2]) == ["BRONX", "STATEN ISLAND"]
        assert list(invalid) == [False, False, True, True]

    def test_coordinate_text_is_normalized(self):
        """Coordinates serialize as the shortest text that parses to the same float."""
        values, _ = parse_coordinate(pd.Series(["-73.90", "40.662964627000048"]))

        text = format_coordinates(values)

        assert list(text) == ["-73.9", repr(40.662964627000048)]
        assert float(text.iloc[1]) == 40.662964627000048

    def test_unrecognized_age_values(self):
        report = unrecognized_age_values(make_raw())

        assert report == {"PERP_AGE_GROUP": ["", "1020"]}


class TestAgeGroupOrder:
    """Tests for the declared age-group order."""

    def test_sorting(self):
        groups = pd.Series(["65+", "<18", "UNKNOWN", "25-44", "18-24", "45-64"],
                           dtype=AGE_GROUP_DTYPE)

        assert list(groups.sort_values()) == [
            "<18", "18-24", "25-44", "45-64", "65+", "UNKNOWN"
        ]

    def test_comparison(self):
        groups = pd.Series(["<18", "25-44", "65+"], dtype=AGE_GROUP_DTYPE)

        assert list(groups < "25-44") == [True, False, False]

    def test_rank(self):
        assert age_group_rank("<18") < age_group_rank("18-24") < age_group_rank("65+")

        with pytest.raises(ValueError, match="Unknown age group"):
            age_group_rank("1020")


class TestSerializeRecords:
    """Tests for serialize_records."""

    @pytest.fixture
    def raw(self):
        return make_raw()

    def test_round_trip_clean_row(self, raw):
        """A row with no normalized fields survives parse -> type -> serialize."""
        serialized = serialize_records(normalize_incidents(raw))

        assert serialized.loc[0].to_dict() == raw.loc[0].to_dict()

    def test_round_trip_unnormalized_columns(self, raw):
        serialized = serialize_records(normalize_incidents(raw))
        columns = ["INCIDENT_KEY", "OCCUR_DATE", "OCCUR_TIME", "BORO", "PRECINCT", "VIC_RACE"]

        pd.testing.assert_frame_equal(
            serialized[columns],
            raw.loc[serialized.index, columns],
        )

    def test_derived_columns_dropped(self, raw):
        serialized = serialize_records(normalize_incidents(raw))

        assert list(serialized.columns) == COLUMNS

    def test_normalized_values(self, raw):
        serialized = serialize_records(normalize_incidents(raw))

        # "Y" -> true, "1020" -> UNKNOWN, "(null)" -> empty, missing coordinates -> empty
        assert serialized.loc[2, "STATISTICAL_MURDER_FLAG"] == "true"
        assert serialized.loc[2, "PERP_AGE_GROUP"] == "UNKNOWN"
        assert serialized.loc[2, "PERP_SEX"] == ""
        assert serialized.loc[2, "Latitude"] == ""


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
