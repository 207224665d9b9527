"""Shared pytest fixtures and utilities for parts ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from parts_ledger import cli, constants, core_logic, data_manager, models  # noqa: E402
from parts_ledger.setup_workbook import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
_CONFIG_TEMPLATE = (
    "[System]\n"
    "ShopName = {shop_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Store]\n"
    "Backend = workbook\n"
    "DataFile = {data_file}\n\n"
    "[Cache]\n"
    "Directory = {cache_dir}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    cache_dir: Path
    schema_version: str
    shop_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an empty ledger workbook in a temp folder."""

    def _create_workbook(*, subdir: str | None = None, filename: str = "ledger.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh ledger workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        shop_name: str = "Test Parts House",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        create_workbook: bool = True,
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        if create_workbook:
            workbook_path = workbook_factory(subdir=bundle_dir.name)
        else:
            workbook_path = bundle_dir / "ledger.xlsx"
        cache_dir = bundle_dir / ".ledger_cache"
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                shop_name=shop_name,
                schema_version=schema_version,
                data_file=workbook_path.name if make_relative else str(workbook_path),
                cache_dir=cache_dir.name if make_relative else str(cache_dir),
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            cache_dir=cache_dir,
            schema_version=schema_version,
            shop_name=shop_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load a workbook-backed runtime context through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


@pytest.fixture
def product_factory() -> Callable[..., models.Product]:
    """Build valid products with overridable fields."""

    def _make(**overrides) -> models.Product:
        values = dict(
            id="",
            name="Clutch Plate",
            type="TATA",
            category="Clutch & Pressure",
            brand="Luk",
            country="India",
            purchase_price=Decimal("100.00"),
            selling_price=Decimal("150.00"),
            quantity=10,
        )
        values.update(overrides)
        return models.Product(**values)

    return _make


def make_sale(
    sale_id: str,
    buyer: str,
    *,
    credit: str = "0",
    cash: str = "0",
    date: str = "2024-01-10T10:00:00.000Z",
) -> models.Sale:
    """Build a one-line sale whose revenue equals ``cash + credit``."""

    total = Decimal(cash) + Decimal(credit)
    return models.Sale(
        id=sale_id,
        date=date,
        items=(models.SaleItem("prod_1", "Clutch Plate", 1, Decimal("0.00"), total),),
        total_revenue=total,
        total_profit=Decimal("0.00"),
        buyer_name=buyer,
        credit_info=models.CreditInfo(Decimal(cash), Decimal(credit), total),
    )


def make_credit(credit_id: str, buyer: str, amount: str, *, date: str = "2024-01-05T00:00:00.000Z") -> models.StandaloneCredit:
    return models.StandaloneCredit(
        id=credit_id,
        buyer_name=buyer,
        credit_amount=Decimal(amount),
        description="Previous balance",
        date=date,
    )


def make_payment(payment_id: str, buyer: str, amount: str, *, date: str = "2024-01-20T00:00:00.000Z") -> models.Payment:
    return models.Payment(id=payment_id, buyer_name=buyer, amount=Decimal(amount), date=date)


# ---------------------------------------------------------------------------
# Gateway and context fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def offline_remote() -> Mock:
    """Remote store double whose every call fails as if the network were down."""

    remote = Mock(name="remote")
    failure = data_manager.RemoteStoreError("remote unavailable")
    remote.select.side_effect = failure
    remote.apply.side_effect = failure
    remote.upsert.side_effect = failure
    return remote


@pytest.fixture
def local_cache(tmp_path: Path) -> data_manager.LocalCache:
    return data_manager.LocalCache(tmp_path / "cache")


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        shop_name="Test Parts House",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        backend=constants.StoreBackend.WORKBOOK,
        cache_dir=tmp_path / "cache",
        data_file=tmp_path / "ledger.xlsx",
    )


@pytest.fixture
def context(
    settings: data_manager.ConfigSettings,
    offline_remote: Mock,
    local_cache: data_manager.LocalCache,
) -> core_logic.RuntimeContext:
    """Runtime context whose remote is offline, so every write lands in the local cache."""

    gateway = data_manager.LedgerGateway(offline_remote, local_cache)
    return core_logic.RuntimeContext(settings=settings, gateway=gateway)


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="parts-ledger", description="Parts ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]
