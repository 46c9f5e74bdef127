"""Tests for seikyu.properties module."""

import pytest

from seikyu import db
from seikyu.errors import ConfigurationError
from seikyu.properties import (
    PROPERTY_DEFAULTS,
    get_property,
    initialize_properties,
    resolve_settings,
    set_property,
)


class TestGetProperty:
    def test_falls_back_to_default(self, db_conn):
        assert get_property(db_conn, "PAYEE_NAME") == "山田太郎"

    def test_stored_value_wins(self, db_conn):
        set_property(db_conn, "PAYEE_NAME", "佐藤花子")
        assert get_property(db_conn, "PAYEE_NAME") == "佐藤花子"

    def test_empty_value_falls_back(self, db_conn):
        db.prop_set(db_conn, "PAYEE_NAME", "")
        assert get_property(db_conn, "PAYEE_NAME") == "山田太郎"

    def test_explicit_default(self, db_conn):
        assert get_property(db_conn, "PAYEE_NAME", "Override") == "Override"

    def test_unknown_key_is_empty(self, db_conn):
        assert get_property(db_conn, "NO_SUCH_KEY") == ""


class TestSetProperty:
    def test_unknown_key_still_stored(self, db_conn):
        set_property(db_conn, "CUSTOM", "1")
        assert db.prop_get(db_conn, "CUSTOM") == "1"


class TestInitializeProperties:
    def test_seeds_every_default(self, db_conn):
        assert initialize_properties(db_conn) == "Properties initialized"
        stored = {p["key"]: p["value"] for p in db.prop_list(db_conn)}
        assert stored == PROPERTY_DEFAULTS

    def test_rerun_resets_values(self, db_conn):
        initialize_properties(db_conn)
        set_property(db_conn, "PAYEE_NAME", "佐藤花子")
        initialize_properties(db_conn)
        assert db.prop_get(db_conn, "PAYEE_NAME") == "山田太郎"
        assert len(db.prop_list(db_conn)) == len(PROPERTY_DEFAULTS)


class TestResolveSettings:
    def test_defaults(self, db_conn):
        settings = resolve_settings(db_conn)
        assert settings.work_log_path == "/Invoices/作業記録.xlsx"
        assert settings.invoice_sheet == "シート1"
        assert settings.output_sheet == "ダウンロード用"
        assert settings.cell_total_amount == "F30"
        assert settings.notification_email == ""

    def test_overrides(self, db_conn):
        set_property(db_conn, "INVOICE_OUTPUT_FOLDER_ID", "/Clients/acme/invoices")
        set_property(db_conn, "CELL_WORK_HOURS", "d12")
        settings = resolve_settings(db_conn)
        assert settings.output_folder == "/Clients/acme/invoices"
        assert settings.cell_work_hours == "D12"

    @pytest.mark.parametrize("address", ["12C", "C0", "ABCD1", "C 3", "R1C1"])
    def test_invalid_cell_address(self, db_conn, address):
        set_property(db_conn, "CELL_TOTAL_AMOUNT", address)
        with pytest.raises(ConfigurationError, match="CELL_TOTAL_AMOUNT"):
            resolve_settings(db_conn)
