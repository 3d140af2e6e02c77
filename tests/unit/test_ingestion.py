"""
Unit Tests - Record Loading
"""
import pytest
import polars as pl

from purchase_report.errors import ParseError, RecordIOError
from purchase_report.ingestion.loader import LoaderConfig, RecordLoader, load_records


class TestRecordLoader:
    """Tests for RecordLoader"""

    def test_load_preserves_rows_and_order(self, sample_csv, report_settings):
        """Test rows come back in file order"""
        loader = RecordLoader(LoaderConfig.from_settings(report_settings))
        df = loader.load(sample_csv)

        assert len(df) == 5
        assert df["user_id"].to_list() == ["u1", "u2", "u3", "u4", "u5"]

    def test_text_columns_stay_raw(self, sample_csv, report_settings):
        """Test dates and payload are not coerced at load time"""
        df = load_records(sample_csv, LoaderConfig.from_settings(report_settings))

        assert df["signup_date"].dtype == pl.Utf8
        assert df["store_type_counts"].dtype == pl.Utf8
        assert df["store_type_counts"][0] == '{"Grocery": 3, "Restaurant": 1}'

    def test_empty_cells_are_null(self, sample_csv, report_settings):
        """Test empty device and payload cells load as null"""
        df = load_records(sample_csv, LoaderConfig.from_settings(report_settings))

        assert df["device"][1] is None
        assert df["store_type_counts"][3] is None

    def test_missing_file(self, tmp_path):
        """Test missing file raises RecordIOError"""
        loader = RecordLoader(LoaderConfig())

        with pytest.raises(RecordIOError):
            loader.load(tmp_path / "missing.csv")

    def test_record_io_error_is_os_error(self, tmp_path):
        """Test file errors are catchable as IOError"""
        with pytest.raises(IOError):
            RecordLoader(LoaderConfig()).load(tmp_path / "missing.csv")

    def test_row_arity_mismatch(self, tmp_path):
        """Test a short row raises ParseError with its line number"""
        path = tmp_path / "bad.csv"
        path.write_text("a,b,c\n1,2,3\n4,5\n", encoding="utf-8")

        with pytest.raises(ParseError) as exc_info:
            RecordLoader(LoaderConfig()).load(path)

        assert exc_info.value.row == 3

    def test_extra_field(self, tmp_path):
        """Test a long row raises ParseError"""
        path = tmp_path / "bad.csv"
        path.write_text("a,b\n1,2,3\n", encoding="utf-8")

        with pytest.raises(ParseError):
            RecordLoader(LoaderConfig()).load(path)

    def test_quoted_delimiters_are_not_fields(self, tmp_path):
        """Test commas inside quoted payloads do not count as fields"""
        path = tmp_path / "quoted.csv"
        path.write_text('id,payload\n1,"{""a"": 1, ""b"": 2}"\n', encoding="utf-8")

        df = RecordLoader(LoaderConfig(column_types={"payload": pl.Utf8})).load(path)

        assert df["payload"].to_list() == ['{"a": 1, "b": 2}']

    def test_missing_required_column(self, tmp_path):
        """Test a header without a required column raises ParseError"""
        path = tmp_path / "header.csv"
        path.write_text("user_id,device\nu1,ios\n", encoding="utf-8")

        config = LoaderConfig(required_columns=["user_id", "device", "store_type_counts"])

        with pytest.raises(ParseError, match="store_type_counts"):
            RecordLoader(config).load(path)

    def test_empty_file(self, tmp_path):
        """Test an empty file raises ParseError"""
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ParseError):
            RecordLoader(LoaderConfig()).load(path)

    def test_numeric_columns_stay_raw(self, sample_csv, report_settings):
        """Test counts and spend are left as text for the normalizer"""
        df = load_records(sample_csv, LoaderConfig.from_settings(report_settings))

        assert df["purchase_count"].dtype == pl.Utf8
        assert df["total_spend"].dtype == pl.Utf8
        assert df["total_spend"][0] == "40.0"

    def test_header_only_keeps_declared_types(self, sample_csv, report_settings, tmp_path):
        """Test a file without data rows still has every declared column"""
        path = tmp_path / "header_only.csv"
        path.write_text(sample_csv.read_text(encoding="utf-8").splitlines()[0] + "\n", encoding="utf-8")

        df = load_records(path, LoaderConfig.from_settings(report_settings))

        assert len(df) == 0
        assert set(LoaderConfig.from_settings(report_settings).required_columns) <= set(df.columns)
        assert all(dtype == pl.Utf8 for dtype in df.schema.values())

    def test_na_country_code_survives(self, tmp_path):
        """Test the Namibia country code "NA" is not read as missing"""
        path = tmp_path / "namibia.csv"
        path.write_text("user_id,country,device\nu1,NA,\nu2,N/A,ios\n", encoding="utf-8")

        df = RecordLoader(LoaderConfig()).load(path)

        assert df["country"].to_list() == ["NA", "N/A"]
        assert df["device"].to_list() == [None, "ios"]
