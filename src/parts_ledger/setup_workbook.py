"""Bootstrap an empty ledger workbook for the ``workbook`` storage backend.

Run as ``parts-ledger-setup`` it reads ``[Store] DataFile`` from
``config.ini`` (or takes ``--output``) and writes one sheet per ledger
collection, each holding only the bold header row that
:class:`~parts_ledger.data_manager.WorkbookRowStore` expects. Tests import
:func:`create_master_workbook` directly.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence

import openpyxl
from openpyxl.styles import Font

from . import data_manager, log
from .constants import Collection, StoreBackend


def create_master_workbook(
    destination: Path,
    *,
    sheet_names: Mapping[Collection, str] = data_manager.SHEET_NAMES,
    sheet_columns: Mapping[Collection, Sequence[str]] = data_manager.SHEET_COLUMNS,
    overwrite: bool = False,
) -> Path:
    """Write an empty ledger workbook to ``destination`` and return its resolved path.

    Raises:
        FileExistsError: If ``destination`` exists and ``overwrite`` is false.
    """

    target = Path(destination).expanduser().resolve()
    if target.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing ledger workbook: {target}")

    workbook = openpyxl.Workbook()
    # openpyxl always starts with a placeholder sheet.
    workbook.remove(workbook.active)

    header_font = Font(bold=True)
    for collection, title in sheet_names.items():
        sheet = workbook.create_sheet(title=title)
        sheet.append(list(sheet_columns[collection]))
        for cell in sheet[1]:
            cell.font = header_font

    data_manager.save_workbook(workbook, target)
    log.info("Created ledger workbook '%s' with sheets %s", target, ", ".join(workbook.sheetnames))
    return target


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    """Create the workbook named by ``[Store] DataFile`` in ``config_path``.

    Raises:
        KeyError: If the configuration selects another backend.
    """

    config_path = Path(config_path).expanduser().resolve()
    settings = data_manager.parse_settings(data_manager.read_config(config_path), base_path=config_path.parent)
    if settings.backend is not StoreBackend.WORKBOOK or settings.data_file is None:
        raise KeyError("Configuration does not use the workbook backend")
    return create_master_workbook(settings.data_file, overwrite=overwrite)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="parts-ledger-setup",
        description="Create an empty parts ledger workbook.",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--config",
        default=data_manager.CONFIG_FILE_NAME,
        help="Configuration file naming the workbook (default: config.ini).",
    )
    target.add_argument(
        "--output",
        type=Path,
        help="Write the workbook to this path instead of the configured DataFile.",
    )
    parser.add_argument("--force", action="store_true", help="Replace an existing workbook.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Script entry point; returns 0 on success and 1 on any failure."""

    args = parse_args(argv)
    print("--- Parts Ledger Setup ---")

    try:
        if args.output is not None:
            output_path = create_master_workbook(args.output, overwrite=args.force)
        else:
            config_path = Path(args.config).expanduser().resolve()
            print(f"Using configuration: {config_path}")
            output_path = run_from_config(config_path, overwrite=args.force)
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (FileNotFoundError, KeyError, ValueError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except OSError as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created ledger workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
