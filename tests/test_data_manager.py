"""Unit tests documenting the expected behavior of the data access layer."""

from __future__ import annotations

import configparser
import json
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock, call

import pytest
from openpyxl.workbook import Workbook as OpenpyxlWorkbook

from parts_ledger import constants, data_manager, models
from parts_ledger.constants import Collection
from parts_ledger.data_manager import Mutation, MutationKind


def _product_record(product_factory, product_id="prod_1", **overrides):
    return models.product_to_record(product_factory(id=product_id, **overrides))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_find_config_file_respects_explicit_path(config_file: Path):
    """Supplying an explicit path should be treated as the winning answer."""

    result = data_manager.find_config_file(config_file)
    assert result == config_file


def test_find_config_file_discovers_in_parent_directories(tmp_path, monkeypatch):
    """Auto-discovery should walk up from the working directory."""

    config_file = tmp_path / "config.ini"
    config_file.write_text("[System]\nShopName=Somewhere\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert data_manager.find_config_file() == config_file


def test_find_config_file_raises_when_missing(tmp_path, monkeypatch):
    """Absent configuration should surface a clear FileNotFoundError."""

    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        data_manager.find_config_file()


def test_read_config_loads_sections(config_file: Path):
    parser = data_manager.read_config(config_file)
    assert parser.get("System", "ShopName") == "Test Parts House"
    assert parser.get("Store", "Backend") == "workbook"


def test_read_config_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        data_manager.read_config(tmp_path / "not_there.ini")


def test_parse_settings_resolves_relative_paths(config_factory):
    """Relative DataFile and cache entries should be anchored to the config location."""

    bundle = config_factory(make_relative=True)
    parser = configparser.ConfigParser()
    parser.read(bundle.config_path)

    settings = data_manager.parse_settings(parser, base_path=bundle.config_path.parent)

    assert settings.backend is constants.StoreBackend.WORKBOOK
    assert settings.data_file == (bundle.config_path.parent / bundle.workbook_path.name).resolve()
    assert settings.cache_dir == bundle.cache_dir.resolve()
    assert settings.shop_name == "Test Parts House"
    assert settings.remote_timeout == data_manager.DEFAULT_REMOTE_TIMEOUT


def test_parse_settings_reads_rest_backend(tmp_path):
    parser = configparser.ConfigParser()
    parser.read_string(
        "[System]\nShopName=Shop\nSchemaVersion=1.0.0\n"
        "[Store]\nBackend=REST\n"
        "[Remote]\nUrl=https://example.test/rest/v1\nApiKey=secret\nTimeout=3.5\n"
        "[Cache]\nDirectory=cache\n"
    )

    settings = data_manager.parse_settings(parser, base_path=tmp_path)

    assert settings.backend is constants.StoreBackend.REST
    assert settings.remote_url == "https://example.test/rest/v1"
    assert settings.remote_api_key == "secret"
    assert settings.remote_timeout == 3.5
    assert settings.data_file is None
    assert settings.cache_dir == (tmp_path / "cache").resolve()


def test_parse_settings_requires_expected_sections(tmp_path):
    """Missing keys should result in a descriptive KeyError."""

    parser = configparser.ConfigParser()
    parser.read_string("[Other]\nvalue=1")
    with pytest.raises(KeyError):
        data_manager.parse_settings(parser, base_path=tmp_path)


def test_parse_settings_requires_remote_options_for_rest(tmp_path):
    parser = configparser.ConfigParser()
    parser.read_string(
        "[System]\nShopName=Shop\nSchemaVersion=1.0.0\n[Store]\nBackend=rest\n[Cache]\nDirectory=cache\n"
    )
    with pytest.raises(KeyError):
        data_manager.parse_settings(parser, base_path=tmp_path)


@pytest.mark.parametrize(
    "extra",
    ["[Store]\nBackend=floppy\nDataFile=x.xlsx\n", "[Store]\nBackend=workbook\nDataFile=x.xlsx\n[Remote]\nTimeout=0\n"],
)
def test_parse_settings_rejects_bad_values(tmp_path, extra):
    parser = configparser.ConfigParser()
    parser.read_string("[System]\nShopName=Shop\nSchemaVersion=1.0.0\n[Cache]\nDirectory=cache\n" + extra)
    with pytest.raises(ValueError):
        data_manager.parse_settings(parser, base_path=tmp_path)


# ---------------------------------------------------------------------------
# Workbook helpers
# ---------------------------------------------------------------------------


def test_open_workbook_returns_openpyxl_instance(master_workbook_path):
    workbook = data_manager.open_workbook(master_workbook_path)
    assert isinstance(workbook, OpenpyxlWorkbook)
    assert workbook.sheetnames == list(data_manager.SHEET_NAMES.values())


def test_open_workbook_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        data_manager.open_workbook(tmp_path / "missing.xlsx")


def test_serialize_row_encodes_nested_columns_as_json():
    record = {"id": "sale_1", "items": [{"productId": "p"}], "creditInfo": {"cashAmount": 1.0}}

    row = data_manager.serialize_row(Collection.SALES, record)

    assert row[0] == "sale_1"
    assert json.loads(row[3]) == [{"productId": "p"}]
    assert row[1] is None


def test_deserialize_row_drops_blanks_and_bad_json():
    headers = ["id", "name", "pricing", "quantity"]

    record = data_manager.deserialize_row(headers, ["prod_1", None, "{broken", 4])

    assert record == {"id": "prod_1", "quantity": 4}


def test_locate_row_finds_matching_id(master_workbook_path, product_factory):
    store = data_manager.WorkbookRowStore(master_workbook_path)
    store.insert(Collection.PRODUCTS, _product_record(product_factory, "prod_a"))
    store.insert(Collection.PRODUCTS, _product_record(product_factory, "prod_b"))

    workbook = data_manager.open_workbook(master_workbook_path)

    assert data_manager.locate_row(workbook, "Products", "id", "prod_b") == 3
    assert data_manager.locate_row(workbook, "Products", "id", "prod_z") is None
    with pytest.raises(KeyError):
        data_manager.locate_row(workbook, "Products", "nope", "prod_a")


# ---------------------------------------------------------------------------
# Workbook row store
# ---------------------------------------------------------------------------


def test_workbook_store_round_trips_products_with_pricing(master_workbook_path, product_factory):
    pricing = models.PurchasePricing.build("12.5", currency="USD", exchange_rate="110", duty_per_unit="75")
    product = product_factory(id="prod_1", purchase_price=Decimal("1450.00"), pricing=pricing)

    data_manager.WorkbookRowStore(master_workbook_path).insert(
        Collection.PRODUCTS, models.product_to_record(product)
    )
    rows = data_manager.WorkbookRowStore(master_workbook_path).select(Collection.PRODUCTS)

    assert [models.product_from_record(row) for row in rows] == [product]


def test_workbook_store_update_and_delete(master_workbook_path, product_factory):
    store = data_manager.WorkbookRowStore(master_workbook_path)
    store.insert(Collection.PRODUCTS, _product_record(product_factory, "prod_1"))
    store.insert(Collection.PRODUCTS, _product_record(product_factory, "prod_2"))

    store.update(Collection.PRODUCTS, _product_record(product_factory, "prod_1", quantity=3))
    store.delete(Collection.PRODUCTS, "prod_2")
    store.delete(Collection.PRODUCTS, "prod_missing")

    rows = data_manager.WorkbookRowStore(master_workbook_path).select(Collection.PRODUCTS)
    assert [(row["id"], row["quantity"]) for row in rows] == [("prod_1", 3)]
    assert store.fetch(Collection.PRODUCTS, "prod_2") is None


def test_workbook_store_rejects_duplicate_insert_and_unknown_update(master_workbook_path, product_factory):
    store = data_manager.WorkbookRowStore(master_workbook_path)
    store.insert(Collection.PRODUCTS, _product_record(product_factory, "prod_1"))

    with pytest.raises(data_manager.RemoteStoreError):
        store.insert(Collection.PRODUCTS, _product_record(product_factory, "prod_1"))
    with pytest.raises(data_manager.RemoteStoreError):
        store.update(Collection.PRODUCTS, _product_record(product_factory, "prod_2"))


def test_workbook_store_batch_is_all_or_nothing(master_workbook_path, product_factory):
    """A failing step discards the edits of earlier steps in the same batch."""

    store = data_manager.WorkbookRowStore(master_workbook_path)
    mutations = [
        Mutation(MutationKind.INSERT, Collection.PRODUCTS, "prod_1", _product_record(product_factory, "prod_1")),
        Mutation(MutationKind.UPDATE, Collection.PRODUCTS, "prod_ghost", _product_record(product_factory, "prod_ghost")),
    ]

    with pytest.raises(data_manager.RemoteStoreError):
        store.apply(mutations)

    assert store.select(Collection.PRODUCTS) == []
    assert data_manager.WorkbookRowStore(master_workbook_path).select(Collection.PRODUCTS) == []


def test_workbook_store_missing_file_raises_remote_error(tmp_path):
    store = data_manager.WorkbookRowStore(tmp_path / "absent.xlsx")
    with pytest.raises(data_manager.RemoteStoreError):
        store.select(Collection.SALES)


# ---------------------------------------------------------------------------
# Local cache
# ---------------------------------------------------------------------------


def test_local_cache_load_missing_collection_is_empty(local_cache):
    assert local_cache.load(Collection.PAYMENTS) == []
    assert local_cache.path_for(Collection.PAYMENTS).name == "payments.json"


def test_local_cache_store_and_find(local_cache):
    local_cache.store(Collection.PAYMENTS, [{"id": "payment_1", "amount": 5.0}])

    assert local_cache.load(Collection.PAYMENTS) == [{"id": "payment_1", "amount": 5.0}]
    assert local_cache.find(Collection.PAYMENTS, "payment_1") == {"id": "payment_1", "amount": 5.0}
    assert local_cache.find(Collection.PAYMENTS, "payment_2") is None
    assert not list(local_cache.directory.glob("*.tmp"))


@pytest.mark.parametrize("content", ["{not json", '{"id": "x"}'])
def test_local_cache_rejects_corrupt_files(local_cache, content):
    local_cache.directory.mkdir(parents=True)
    local_cache.path_for(Collection.SALES).write_text(content, encoding="utf-8")

    with pytest.raises(data_manager.LocalCacheError):
        local_cache.load(Collection.SALES)


def test_local_cache_strict_apply_refuses_unknown_records(local_cache):
    local_cache.store(Collection.PRODUCTS, [{"id": "prod_1", "quantity": 1}])
    mutations = [
        Mutation(MutationKind.UPDATE, Collection.PRODUCTS, "prod_1", {"id": "prod_1", "quantity": 0}),
        Mutation(MutationKind.DELETE, Collection.PRODUCTS, "prod_9"),
    ]

    with pytest.raises(data_manager.RecordNotFoundError):
        local_cache.apply(mutations, strict=True)

    assert local_cache.load(Collection.PRODUCTS) == [{"id": "prod_1", "quantity": 1}]


def test_local_cache_lenient_apply_appends_and_ignores(local_cache):
    mutations = [
        Mutation(MutationKind.UPDATE, Collection.PRODUCTS, "prod_1", {"id": "prod_1", "quantity": 2}),
        Mutation(MutationKind.DELETE, Collection.PRODUCTS, "prod_9"),
        Mutation(MutationKind.INSERT, Collection.PAYMENTS, "payment_1", {"id": "payment_1"}),
    ]

    local_cache.apply(mutations, strict=False)

    assert local_cache.load(Collection.PRODUCTS) == [{"id": "prod_1", "quantity": 2}]
    assert local_cache.load(Collection.PAYMENTS) == [{"id": "payment_1"}]


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


def test_gateway_reads_remote_without_touching_cache(local_cache):
    local_cache.store(Collection.PAYMENTS, [{"id": "payment_local"}])
    remote = Mock(name="remote")
    remote.select.return_value = [{"id": "payment_remote", "buyerName": "Karim", "amount": 10}]
    gateway = data_manager.LedgerGateway(remote, local_cache)

    payments = gateway.list_payments()

    assert [payment.id for payment in payments] == ["payment_remote"]
    assert local_cache.load(Collection.PAYMENTS) == [{"id": "payment_local"}]
    remote.select.assert_called_once_with(Collection.PAYMENTS)


def test_gateway_falls_back_to_cache_when_remote_fails(offline_remote, local_cache):
    local_cache.store(Collection.SALES, [{"id": "sale_1", "buyerName": "Karim"}])
    gateway = data_manager.LedgerGateway(offline_remote, local_cache)

    sales = gateway.list_sales()

    assert [sale.id for sale in sales] == ["sale_1"]


def test_gateway_commit_mirrors_successful_remote_write(local_cache):
    remote = Mock(name="remote")
    gateway = data_manager.LedgerGateway(remote, local_cache)
    mutation = Mutation(MutationKind.INSERT, Collection.PAYMENTS, "payment_1", {"id": "payment_1"})

    assert gateway.commit([mutation]) is True

    remote.apply.assert_called_once_with([mutation])
    assert local_cache.load(Collection.PAYMENTS) == [{"id": "payment_1"}]


def test_gateway_commit_falls_back_to_cache_when_offline(offline_remote, local_cache):
    gateway = data_manager.LedgerGateway(offline_remote, local_cache)
    mutation = Mutation(MutationKind.INSERT, Collection.PAYMENTS, "payment_1", {"id": "payment_1"})

    assert gateway.commit([mutation]) is False
    assert local_cache.load(Collection.PAYMENTS) == [{"id": "payment_1"}]


def test_gateway_commit_of_nothing_skips_remote(local_cache):
    remote = Mock(name="remote")
    gateway = data_manager.LedgerGateway(remote, local_cache)

    assert gateway.commit([]) is True
    remote.apply.assert_not_called()


def test_gateway_offline_delete_of_unknown_record_raises(offline_remote, local_cache):
    gateway = data_manager.LedgerGateway(offline_remote, local_cache)

    with pytest.raises(data_manager.RecordNotFoundError):
        gateway.delete(Collection.SALES, "sale_missing")


def test_gateway_create_assigns_identifier(offline_remote, local_cache):
    gateway = data_manager.LedgerGateway(offline_remote, local_cache)
    payment = models.Payment("", "Karim", Decimal("10.00"), "2024-01-01")

    created = gateway.create(payment)

    assert created.id.startswith("payment_")
    assert models.is_valid_id(created.id)
    assert gateway.list_payments() == [created]


def test_gateway_create_keeps_existing_identifier(offline_remote, local_cache):
    gateway = data_manager.LedgerGateway(offline_remote, local_cache)
    payment = models.Payment("payment_fixed", "Karim", Decimal("10.00"), "2024-01-01")

    assert gateway.create(payment).id == "payment_fixed"


def test_sync_to_remote_upserts_every_cached_record(local_cache):
    local_cache.store(Collection.PRODUCTS, [{"id": "prod_1"}, {"id": "prod_2"}])
    local_cache.store(Collection.PAYMENTS, [{"id": "payment_1"}])
    remote = Mock(name="remote")
    gateway = data_manager.LedgerGateway(remote, local_cache)

    pushed = gateway.sync_to_remote()

    assert pushed[Collection.PRODUCTS] == 2
    assert pushed[Collection.PAYMENTS] == 1
    assert pushed[Collection.SALES] == 0
    remote.upsert.assert_has_calls(
        [
            call(Collection.PRODUCTS, {"id": "prod_1"}),
            call(Collection.PRODUCTS, {"id": "prod_2"}),
            call(Collection.PAYMENTS, {"id": "payment_1"}),
        ]
    )


def test_sync_to_remote_stops_at_first_failure(offline_remote, local_cache):
    local_cache.store(Collection.PRODUCTS, [{"id": "prod_1"}, {"id": "prod_2"}])
    gateway = data_manager.LedgerGateway(offline_remote, local_cache)

    pushed = gateway.sync_to_remote()

    assert sum(pushed.values()) == 0
    assert offline_remote.upsert.call_count == 1


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def test_build_remote_store_selects_backend(settings):
    store = data_manager.build_remote_store(settings)
    assert isinstance(store, data_manager.WorkbookRowStore)

    rest_settings = data_manager.ConfigSettings(
        shop_name="Shop",
        schema_version="1.0.0",
        backend=constants.StoreBackend.REST,
        cache_dir=settings.cache_dir,
        remote_url="https://example.test/rest/v1",
        remote_api_key="key",
    )
    assert isinstance(data_manager.build_remote_store(rest_settings), data_manager.RestRowStore)


def test_build_remote_store_requires_rest_credentials(settings):
    incomplete = data_manager.ConfigSettings(
        shop_name="Shop",
        schema_version="1.0.0",
        backend=constants.StoreBackend.REST,
        cache_dir=settings.cache_dir,
    )
    with pytest.raises(KeyError):
        data_manager.build_remote_store(incomplete)


def test_build_gateway_uses_configured_cache_directory(settings):
    gateway = data_manager.build_gateway(settings)
    assert gateway.cache.directory == settings.cache_dir.resolve()
