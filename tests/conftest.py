"""
Test Suite Configuration
"""
from pathlib import Path

import pytest
import polars as pl

from purchase_report.config import ReportSettings, Settings


SAMPLE_CSV = '''user_id,signup_date,first_purchase_date,last_purchase_date,country,device,first_purchase_weekday,purchase_count,total_spend,is_referral,store_type_counts
u1,2023-01-01 10:00:00,2023-01-04 12:00:00,2023-02-01 09:00:00,US,ios,3,4,40.0,true,"{""Grocery"": 3, ""Restaurant"": 1}"
u2,2023-01-02 08:00:00,2023-01-12 08:00:00,2023-01-20 10:00:00,US,,4,2,30.0,false,"{""Grocery"": 2}"
u3,2023-01-03 09:00:00,2023-06-01 09:00:00,2023-06-01 09:00:00,CA,android,4,1,15.0,false,"{""Retail Store"": 1}"
u4,2023-01-05 11:00:00,,,CA,web,1,0,0.0,true,
u5,2023-01-06 11:00:00,not a date,2023-01-09 11:00:00,US,ios,7,3,45.0,false,"{""Restaurant"": 3}"
'''


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        report=ReportSettings(),
    )


@pytest.fixture(scope="session")
def report_settings(test_settings) -> ReportSettings:
    """Report section of the test settings"""
    return test_settings.report


@pytest.fixture
def sample_csv(tmp_path) -> Path:
    """Write the sample purchase file to a temporary directory"""
    path = tmp_path / "user_purchases.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path


@pytest.fixture
def sample_raw_df() -> pl.DataFrame:
    """Create raw purchase records as the loader returns them"""
    return pl.DataFrame({
        "user_id": ["u1", "u2", "u3"],
        "signup_date": ["2023-01-01 10:00:00", "2023-01-02 08:00:00", "2023-01-03 09:00:00"],
        "first_purchase_date": ["2023-01-04 12:00:00", "2023-01-12 08:00:00", None],
        "last_purchase_date": ["2023-02-01 09:00:00", "2023-01-20 10:00:00", None],
        "country": ["US", "US", "CA"],
        "device": ["ios", "", None],
        "first_purchase_weekday": [3, 4, 1],
        "purchase_count": [4, 2, 0],
        "total_spend": [40.0, 30.0, 0.0],
        "is_referral": [True, False, True],
        "store_type_counts": ['{"Grocery": 3, "Restaurant": 1}', '{"Grocery": 2}', None],
    })


@pytest.fixture
def sample_summary_df() -> pl.DataFrame:
    """Create decomposed records for aggregation tests"""
    return pl.DataFrame({
        "user_id": ["a", "b", "c", "d", "e"],
        "device": ["ios", "ios", "android", "android", "android"],
        "spend": [10.0, 10.0, 20.0, 20.0, 20.0],
        "purchases": [1, 3, 2, None, 4],
        "flag": [True, False, True, True, False],
    })
