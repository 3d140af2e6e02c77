"""
Unit Tests - Aggregation Pipeline
"""
import pytest
import polars as pl

from purchase_report.analytics.aggregation import (
    GRAND_TOTAL,
    MISSING_LABEL,
    PURCHASES,
    STORE_TYPE,
    count,
    count_distinct,
    count_where,
    group_summarize,
    mean_of,
    sum_of,
    unpivot_store_types,
    weighted_mean_of,
)
from purchase_report.errors import SchemaError
from purchase_report.transformation.decomposer import StoreTypeSchema


def _row(table: pl.DataFrame, key: str, label: str) -> dict:
    return table.filter(pl.col(key) == label).to_dicts()[0]


class TestMeasures:
    """Tests for measure naming"""

    def test_default_names(self):
        assert count().name == "count"
        assert sum_of("spend").name == "sum_spend"
        assert mean_of("spend").name == "mean_spend"
        assert weighted_mean_of("spend", "purchases").name == "weighted_mean_spend"
        assert count_where("flag", True).name == "flag_true"
        assert count_distinct("user_id").name == "distinct_user_id"

    def test_alias(self):
        assert sum_of("spend", alias="revenue").name == "revenue"
        assert count().as_("users").name == "users"


class TestGroupSummarize:
    """Tests for group_summarize"""

    def test_groups_sorted_with_trailing_total(self, sample_summary_df):
        """Test groups sort by the first measure descending, then Grand Total"""
        result = group_summarize(sample_summary_df, "device", [count(), sum_of("spend")])

        assert result.columns == ["device", "count", "sum_spend"]
        assert result["device"].to_list() == ["android", "ios", GRAND_TOTAL]
        assert result["count"].to_list() == [3, 2, 5]
        assert result["sum_spend"].to_list() == [60.0, 20.0, 80.0]

    def test_grand_total_mean_is_exact(self, sample_summary_df):
        """Test groups (2 x 10) and (3 x 20) give a grand mean of 16"""
        result = group_summarize(sample_summary_df, "device", [count(), mean_of("spend")])

        assert _row(result, "device", "ios")["mean_spend"] == 10.0
        assert _row(result, "device", "android")["mean_spend"] == 20.0
        assert _row(result, "device", GRAND_TOTAL)["mean_spend"] == pytest.approx(16.0)

    def test_group_counts_sum_to_total(self, sample_summary_df):
        result = group_summarize(sample_summary_df, "device", [count()])

        groups = result.filter(pl.col("device") != GRAND_TOTAL)
        assert groups["count"].sum() == _row(result, "device", GRAND_TOTAL)["count"]

    def test_sum_treats_missing_as_zero(self, sample_summary_df):
        result = group_summarize(sample_summary_df, "device", [sum_of("purchases")])

        assert _row(result, "device", "android")["sum_purchases"] == 6
        assert _row(result, "device", GRAND_TOTAL)["sum_purchases"] == 10

    def test_mean_skips_missing(self, sample_summary_df):
        """Test missing values leave both numerator and denominator"""
        result = group_summarize(sample_summary_df, "device", [count(), mean_of("purchases")])

        android = _row(result, "device", "android")
        assert android["count"] == 3
        assert android["mean_purchases"] == pytest.approx(3.0)
        assert _row(result, "device", GRAND_TOTAL)["mean_purchases"] == pytest.approx(2.5)

    def test_mean_without_skipping_missing(self, sample_summary_df):
        result = group_summarize(
            sample_summary_df, "device", [count(), mean_of("purchases", skip_missing=False)]
        )

        assert _row(result, "device", "android")["mean_purchases"] is None
        assert _row(result, "device", "ios")["mean_purchases"] == pytest.approx(2.0)
        assert _row(result, "device", GRAND_TOTAL)["mean_purchases"] is None

    def test_weighted_mean(self, sample_summary_df):
        result = group_summarize(
            sample_summary_df, "device", [count(), weighted_mean_of("spend", "purchases")]
        )

        assert _row(result, "device", "android")["weighted_mean_spend"] == pytest.approx(20.0)
        assert _row(result, "device", "ios")["weighted_mean_spend"] == pytest.approx(10.0)
        assert _row(result, "device", GRAND_TOTAL)["weighted_mean_spend"] == pytest.approx(16.0)

    def test_weighted_mean_zero_weight(self):
        df = pl.DataFrame({"g": ["a"], "x": [5.0], "w": [0]})

        result = group_summarize(df, "g", [weighted_mean_of("x", "w")], grand_total=False)

        assert result["weighted_mean_x"].to_list() == [None]

    def test_flag_tabulation_sums_to_count(self, sample_summary_df):
        """Test true and false counts add up to the group count"""
        result = group_summarize(
            sample_summary_df,
            "device",
            [count(), count_where("flag", True), count_where("flag", False)],
        )

        for row in result.to_dicts():
            assert row["flag_true"] + row["flag_false"] == row["count"]
        assert _row(result, "device", "android")["flag_true"] == 2

    def test_filter_applies_to_grand_total(self, sample_summary_df):
        result = group_summarize(
            sample_summary_df,
            "device",
            [count()],
            filter=pl.col("spend") > 10,
        )

        assert result["device"].to_list() == ["android", GRAND_TOTAL]
        assert result["count"].to_list() == [3, 3]

    def test_sort_by_other_measure(self):
        df = pl.DataFrame({
            "g": ["a", "a", "a", "b"],
            "x": [1.0, 1.0, 1.0, 10.0],
        })

        result = group_summarize(df, "g", [count(), sum_of("x")], sort_by="sum_x")

        assert result["g"].to_list() == ["b", "a", GRAND_TOTAL]

    def test_ties_break_by_label(self):
        df = pl.DataFrame({"g": ["c", "a", "b"]})

        result = group_summarize(df, "g", [count()])

        assert result["g"].to_list() == ["a", "b", "c", GRAND_TOTAL]

    def test_missing_group_key(self):
        df = pl.DataFrame({"g": ["a", None, None]})

        result = group_summarize(df, "g", [count()])

        assert result["g"].to_list() == [MISSING_LABEL, "a", GRAND_TOTAL]

    def test_categorical_group_key(self, sample_summary_df):
        df = sample_summary_df.with_columns(pl.col("device").cast(pl.Categorical))

        result = group_summarize(df, "device", [count()])

        assert result["device"].dtype == pl.Utf8
        assert result["device"].to_list() == ["android", "ios", GRAND_TOTAL]

    def test_without_grand_total(self, sample_summary_df):
        result = group_summarize(sample_summary_df, "device", [count()], grand_total=False)

        assert GRAND_TOTAL not in result["device"].to_list()

    def test_count_distinct_grand_total(self):
        """Test distinct counts in the total are not the sum of the groups"""
        df = pl.DataFrame({
            "store": ["a", "a", "b", "b"],
            "user": ["u1", "u2", "u1", None],
        })

        result = group_summarize(df, "store", [count_distinct("user", alias="buyers")])

        assert result.to_dicts() == [
            {"store": "a", "buyers": 2},
            {"store": "b", "buyers": 1},
            {"store": GRAND_TOTAL, "buyers": 2},
        ]

    def test_empty_after_filter(self, sample_summary_df):
        result = group_summarize(
            sample_summary_df, "device", [count(), sum_of("spend")], filter=pl.col("spend") > 100
        )

        assert result["device"].to_list() == [GRAND_TOTAL]
        assert result["count"].to_list() == [0]

    def test_unknown_column(self, sample_summary_df):
        with pytest.raises(SchemaError):
            group_summarize(sample_summary_df, "device", [sum_of("revenue")])

    def test_bad_arguments(self, sample_summary_df):
        with pytest.raises(ValueError):
            group_summarize(sample_summary_df, "device", [])
        with pytest.raises(ValueError):
            group_summarize(sample_summary_df, "device", [count(), count()])
        with pytest.raises(ValueError):
            group_summarize(sample_summary_df, "device", [count()], sort_by="sum_spend")


class TestUnpivotStoreTypes:
    """Tests for unpivot_store_types"""

    def test_long_format(self):
        schema = StoreTypeSchema.declare(["Grocery", "Retail Store"])
        df = pl.DataFrame({
            "user_id": ["a", "b"],
            "Grocery": [2, None],
            "Retail_Store": [1, 5],
        })

        result = unpivot_store_types(df, schema, id_columns=["user_id"])

        assert result.columns == ["user_id", STORE_TYPE, PURCHASES]
        assert len(result) == 4
        assert set(result[STORE_TYPE].to_list()) == {"Grocery", "Retail Store"}

        summary = group_summarize(
            result, STORE_TYPE, [count("buyers"), sum_of(PURCHASES)], filter=pl.col(PURCHASES) > 0
        )
        assert summary.to_dicts() == [
            {STORE_TYPE: "Retail Store", "buyers": 2, "sum_purchases": 6},
            {STORE_TYPE: "Grocery", "buyers": 1, "sum_purchases": 2},
            {STORE_TYPE: GRAND_TOTAL, "buyers": 3, "sum_purchases": 8},
        ]

    def test_empty_schema(self):
        df = pl.DataFrame({"user_id": ["a"]})

        result = unpivot_store_types(df, StoreTypeSchema(), id_columns=["user_id"])

        assert result.columns == ["user_id", STORE_TYPE, PURCHASES]
        assert len(result) == 0
