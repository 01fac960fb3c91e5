import os

from config.settings import Settings, get_settings


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings()

    assert settings.LIFE_EXPECTANCY_CEILING == 150.0
    assert settings.THRESHOLD_QUANTILE == 0.8
    assert settings.REFERENCE_SCOPE == "national"
    assert settings.STUDY_STATE_FIPS is None
    assert settings.STUDY_REGION_COUNTY_FIPS == []
    assert os.path.isdir(tmp_path / "exports")
    assert os.path.isdir(tmp_path / "logs")


def test_source_paths_default_under_data_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings(DATA_DIR="extracts", EJSCREEN_YEAR=2022)

    assert settings.ejscreen_path == os.path.join("extracts", "EJSCREEN_2022_Tracts.csv")
    assert settings.life_expectancy_path == os.path.join("extracts", "US_A.CSV")


def test_explicit_paths_win(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = Settings(EJSCREEN_PATH="/tmp/ej.csv", LIFE_EXPECTANCY_PATH="/tmp/le.csv")

    assert settings.ejscreen_path == "/tmp/ej.csv"
    assert settings.life_expectancy_path == "/tmp/le.csv"


def test_environment_override(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("THRESHOLD_QUANTILE", "0.9")
    monkeypatch.setenv("STUDY_REGION_COUNTY_FIPS", '["24047"]')

    settings = Settings()

    assert settings.THRESHOLD_QUANTILE == 0.9
    assert settings.STUDY_REGION_COUNTY_FIPS == ["24047"]


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
