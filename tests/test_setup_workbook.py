"""Tests for the workbook initialisation script."""

from __future__ import annotations

import openpyxl
import pytest

from parts_ledger import data_manager, setup_workbook
from parts_ledger.constants import Collection


def test_create_master_workbook_writes_every_sheet(tmp_path):
    destination = setup_workbook.create_master_workbook(tmp_path / "nested" / "ledger.xlsx")

    workbook = openpyxl.load_workbook(destination)
    try:
        assert workbook.sheetnames == ["Products", "Sales", "StandaloneCredits", "Payments"]
        for collection, sheet_name in data_manager.SHEET_NAMES.items():
            header = [cell.value for cell in workbook[sheet_name][1]]
            assert header == list(data_manager.SHEET_COLUMNS[collection])
            assert workbook[sheet_name].max_row == 1
        assert workbook["Sales"]["A1"].font.bold
    finally:
        workbook.close()


def test_create_master_workbook_accepts_custom_layout(tmp_path):
    destination = setup_workbook.create_master_workbook(
        tmp_path / "custom.xlsx",
        sheet_names={Collection.PAYMENTS: "Ledger"},
        sheet_columns={Collection.PAYMENTS: ["id", "amount"]},
    )

    workbook = openpyxl.load_workbook(destination)
    try:
        assert workbook.sheetnames == ["Ledger"]
        assert [cell.value for cell in workbook["Ledger"][1]] == ["id", "amount"]
    finally:
        workbook.close()


def test_create_master_workbook_refuses_to_overwrite(tmp_path):
    destination = setup_workbook.create_master_workbook(tmp_path / "ledger.xlsx")

    with pytest.raises(FileExistsError):
        setup_workbook.create_master_workbook(destination)

    assert setup_workbook.create_master_workbook(destination, overwrite=True) == destination


def test_run_from_config_uses_configured_data_file(config_factory):
    bundle = config_factory(create_workbook=False)

    created = setup_workbook.run_from_config(bundle.config_path)

    assert created == bundle.workbook_path.resolve()
    assert created.exists()


def test_run_from_config_resolves_relative_paths(config_factory):
    bundle = config_factory(make_relative=True, create_workbook=False)

    created = setup_workbook.run_from_config(bundle.config_path)

    assert created == (bundle.directory / "ledger.xlsx").resolve()


def test_run_from_config_rejects_rest_backend(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text(
        "[System]\nShopName = Shop\nSchemaVersion = 1\n\n"
        "[Store]\nBackend = rest\n\n"
        "[Remote]\nUrl = https://ledger.example.test/rest/v1\nApiKey = key\n\n"
        "[Cache]\nDirectory = cache\n"
    )

    with pytest.raises(KeyError, match="workbook backend"):
        setup_workbook.run_from_config(config_path)


def test_main_reports_success(config_factory, capsys):
    bundle = config_factory(create_workbook=False)

    assert setup_workbook.main(["--config", str(bundle.config_path)]) == 0

    output = capsys.readouterr().out
    assert "[SUCCESS]" in output
    assert bundle.workbook_path.exists()


def test_main_refuses_existing_workbook_without_force(config_factory, capsys):
    bundle = config_factory()

    assert setup_workbook.main(["--config", str(bundle.config_path)]) == 1
    assert "--force" in capsys.readouterr().out

    assert setup_workbook.main(["--config", str(bundle.config_path), "--force"]) == 0


def test_main_writes_to_explicit_output(tmp_path, capsys):
    destination = tmp_path / "exports" / "fresh.xlsx"

    assert setup_workbook.main(["--output", str(destination)]) == 0

    assert destination.exists()
    assert "Using configuration" not in capsys.readouterr().out


def test_main_rejects_config_together_with_output(tmp_path):
    with pytest.raises(SystemExit):
        setup_workbook.main(["--config", "config.ini", "--output", str(tmp_path / "x.xlsx")])


def test_main_reports_missing_config(tmp_path, capsys):
    assert setup_workbook.main(["--config", str(tmp_path / "absent.ini")]) == 1

    assert "[ERROR]" in capsys.readouterr().out
