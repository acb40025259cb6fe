"""CLI tests for indexing, search, and snapshot commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import semantic_index.main as main_module

runner = CliRunner()

SAMPLE_DOCUMENTS = [
    {
        "id": "sample-soil-1",
        "text": "Soil analysis shows pH level of 6.8, nitrogen at 45 ppm, organic matter 3.2%",
        "metadata": {
            "type": "soil_analysis",
            "region_code": "19105",
            "category_tag": "corn",
            "title": "Iowa County Corn Field Analysis",
        },
    },
    {
        "id": "sample-water-1",
        "text": "Water quality test results: nitrate levels at 8.5 mg/L, pH 7.2",
        "metadata": {"type": "water_quality", "regionCode": "19105"},
    },
]


@pytest.fixture(autouse=True)
def fake_embeddings(monkeypatch, provider_factory):
    monkeypatch.setattr(main_module, "build_embedding_provider", provider_factory)


@pytest.fixture()
def documents_file(tmp_path: Path) -> Path:
    path = tmp_path / "documents.json"
    path.write_text(json.dumps(SAMPLE_DOCUMENTS))
    return path


def _index(documents_file: Path, db_path: str, owner: str = "u1"):
    return runner.invoke(
        main_module.app,
        ["index", "--input", str(documents_file), "--owner", owner, "--db-path", db_path],
    )


def test_index_command_reports_indexed_documents(documents_file: Path, db_path: str) -> None:
    result = _index(documents_file, db_path)

    assert result.exit_code == 0, result.output
    assert "Documents Indexed" in result.output
    assert "Indexed 2 documents" in result.output


def test_index_command_rejects_invalid_documents(tmp_path: Path, db_path: str) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"id": "x"}]))

    result = _index(bad, db_path)

    assert result.exit_code == 1
    assert "Could not read documents" in result.output


def test_search_command_prints_ranked_results(documents_file: Path, db_path: str) -> None:
    assert _index(documents_file, db_path).exit_code == 0

    result = runner.invoke(
        main_module.app,
        [
            "search",
            "--query",
            "nitrate levels",
            "--owner",
            "u1",
            "--threshold",
            "0.25",
            "--db-path",
            db_path,
        ],
    )

    assert result.exit_code == 0, result.output
    assert "sample-water-1" in result.output
    assert "sample-soil-1" not in result.output


def test_search_command_respects_type_filter(documents_file: Path, db_path: str) -> None:
    assert _index(documents_file, db_path).exit_code == 0

    result = runner.invoke(
        main_module.app,
        [
            "search",
            "-q",
            "nitrate levels",
            "-o",
            "u1",
            "-t",
            "soil_analysis",
            "--threshold",
            "0.25",
            "--db-path",
            db_path,
        ],
    )

    assert result.exit_code == 0, result.output
    assert "No matching documents." in result.output


def test_search_command_is_scoped_to_owner(documents_file: Path, db_path: str) -> None:
    assert _index(documents_file, db_path, owner="u1").exit_code == 0

    result = runner.invoke(
        main_module.app,
        ["search", "-q", "nitrate levels", "-o", "u2", "--threshold", "0", "--db-path", db_path],
    )

    assert result.exit_code == 0
    assert "No matching documents." in result.output


def test_stats_command(documents_file: Path, db_path: str) -> None:
    assert _index(documents_file, db_path).exit_code == 0

    result = runner.invoke(main_module.app, ["stats", "--db-path", db_path])

    assert result.exit_code == 0, result.output
    assert "Documents" in result.output
    assert "v1.0" in result.output


def test_export_then_import_into_new_store(
    documents_file: Path, db_path: str, tmp_path: Path
) -> None:
    assert _index(documents_file, db_path).exit_code == 0
    snapshot = tmp_path / "snapshot.json"

    exported = runner.invoke(
        main_module.app, ["export", "--output", str(snapshot), "--db-path", db_path]
    )
    assert exported.exit_code == 0, exported.output
    assert "Exported 2 embeddings" in exported.output
    assert json.loads(snapshot.read_text())["version"] == "1.0"

    other_db = str(tmp_path / "other.duckdb")
    imported = runner.invoke(
        main_module.app, ["import", "--input", str(snapshot), "--db-path", other_db]
    )
    assert imported.exit_code == 0, imported.output
    assert "Imported 2 embeddings" in imported.output


def test_import_command_rejects_malformed_snapshot(tmp_path: Path, db_path: str) -> None:
    snapshot = tmp_path / "snapshot.json"
    snapshot.write_text(json.dumps({"version": "9.9", "embeddings": []}))

    result = runner.invoke(main_module.app, ["import", "-i", str(snapshot), "--db-path", db_path])

    assert result.exit_code == 1
    assert "Import failed" in result.output


def test_clear_command_removes_owner_documents(documents_file: Path, db_path: str) -> None:
    assert _index(documents_file, db_path, owner="u1").exit_code == 0
    assert _index(documents_file, db_path, owner="u1").exit_code == 0

    result = runner.invoke(main_module.app, ["clear", "--owner", "u1", "--db-path", db_path])

    assert result.exit_code == 0, result.output
    assert "Removed 2 documents" in result.output
