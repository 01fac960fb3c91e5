import os

import pandas as pd
import pytest

import src.export.table_export as table_export


@pytest.fixture
def index_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "exceeds_demo_index_mean": pd.array([True, False], dtype="boolean"),
            "demo_index_mean": [31.2, 18.4],
            "pct_low_income": [45.0, 12.0],
            "geoid": ["24019970100", "24003701000"],
            "LOWINCPCT": [0.45, 0.12],
        }
    )


def test_output_columns_start_with_geoid_and_are_unique():
    assert table_export.OUTPUT_COLUMNS[0] == "geoid"
    assert len(table_export.OUTPUT_COLUMNS) == len(set(table_export.OUTPUT_COLUMNS))
    assert "demo_index_pctile_pca_scaled" in table_export.OUTPUT_COLUMNS


def test_order_output_columns(index_frame):
    ordered = table_export.order_output_columns(index_frame)

    assert list(ordered.columns) == [
        "geoid",
        "LOWINCPCT",
        "pct_low_income",
        "demo_index_mean",
        "exceeds_demo_index_mean",
    ]


def test_calculate_file_checksum(tmp_path):
    path = tmp_path / "file.csv"
    path.write_bytes(b"abc")

    assert table_export.calculate_file_checksum(str(path)) == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_run_table_export_writes_table_and_reports(index_frame, tmp_path):
    reports = {"thresholds": pd.DataFrame({"index": ["demo_index_mean"], "threshold": [30.0]})}

    result = table_export.run_table_export(index_frame, reports=reports, export_dir=str(tmp_path))

    assert result["record_count"] == 2
    assert os.path.basename(result["output_path"]) == "demographic_index.csv"
    assert os.path.exists(result["report_paths"]["thresholds"])
    assert len(result["checksum"]) == 64

    written = pd.read_csv(result["output_path"], dtype={"geoid": str})
    assert written["geoid"].tolist() == ["24019970100", "24003701000"]
    assert list(written.columns)[0] == "geoid"


def test_run_table_export_writes_one_index_table(index_frame, tmp_path):
    result = table_export.run_table_export(index_frame, export_dir=str(tmp_path))

    assert [p.name for p in tmp_path.iterdir()] == ["demographic_index.csv"]
    assert set(result) == {"record_count", "column_count", "output_path", "checksum", "report_paths"}


def test_run_table_export_overwrites_previous_run(index_frame, tmp_path):
    first = table_export.run_table_export(index_frame, export_dir=str(tmp_path))
    second = table_export.run_table_export(index_frame.iloc[:1], export_dir=str(tmp_path))

    assert first["output_path"] == second["output_path"]
    assert len(list(tmp_path.iterdir())) == 1
    assert len(pd.read_csv(second["output_path"])) == 1


def test_run_table_export_rejects_empty(tmp_path, empty_dataframe):
    with pytest.raises(ValueError):
        table_export.run_table_export(empty_dataframe, export_dir=str(tmp_path))
