"""
Tests for menu CRUD and spreadsheet import
"""

import io

import pandas as pd
import pytest

from orderdesk.core.exceptions import NotFoundError, ValidationError
from orderdesk.schemas import MenuItemCreate, MenuItemUpdate
from orderdesk.services.menu_catalog import MenuCatalog, parse_price, read_menu_rows


def excel_bytes(rows: list[dict]) -> bytes:
    buffer = io.BytesIO()
    pd.DataFrame(rows).to_excel(buffer, index=False)
    return buffer.getvalue()


@pytest.fixture
def catalog(store):
    return MenuCatalog(store)


@pytest.mark.parametrize("value, expected", [
    ("$12.50", 12.5),
    ("12", 12.0),
    (9.99, 9.99),
    ("USD 7", 7.0),
    ("free", 0.0),
    ("", 0.0),
    (None, 0.0),
    (-4, 0.0),
    (float("nan"), 0.0),
])
def test_parse_price(value, expected):
    assert parse_price(value) == expected


class TestReadMenuRows:

    def test_header_synonyms_case_insensitive(self):
        content = excel_bytes([{"ITEM": "Pizza", "Category": "Mains", "Price": "$12.50", "Desc": "Cheesy"}])

        [row] = read_menu_rows("menu.xlsx", content)

        assert row == {"name": "Pizza", "category": "Mains", "price": "$12.50", "description": "Cheesy"}

    def test_csv(self):
        content = b"name,price\nSoda,2.5\n"

        [row] = read_menu_rows("menu.csv", content)

        assert row["name"] == "Soda"
        assert row["category"] == ""

    def test_unreadable_file(self):
        with pytest.raises(ValidationError) as exc_info:
            read_menu_rows("menu.xlsx", b"definitely not a workbook")
        assert exc_info.value.message.startswith("Failed to parse file")


class TestMenuCatalog:

    async def test_create_defaults(self, catalog):
        item = await catalog.create_item(MenuItemCreate(name="  Pizza ", price="$12.50"))

        assert item.name == "Pizza"
        assert item.category == "Uncategorized"
        assert item.price == 12.5
        assert item.available is True

    async def test_create_requires_name(self, catalog):
        with pytest.raises(ValidationError):
            await catalog.create_item(MenuItemCreate(name=" "))

    async def test_update_only_sent_fields(self, catalog):
        item = await catalog.create_item(MenuItemCreate(name="Pizza", category="Mains", price=10))

        updated = await catalog.update_item(item.id, MenuItemUpdate(available=False))

        assert updated.available is False
        assert updated.category == "Mains"
        assert updated.price == 10.0

    async def test_update_missing_item(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.update_item("menu_missing", MenuItemUpdate(price=1))

    async def test_delete(self, catalog):
        item = await catalog.create_item(MenuItemCreate(name="Pizza"))

        await catalog.delete_item(item.id)

        assert await catalog.list_items() == []
        with pytest.raises(NotFoundError):
            await catalog.delete_item(item.id)

    async def test_list_by_category(self, catalog):
        await catalog.create_item(MenuItemCreate(name="Pizza", category="Mains"))
        await catalog.create_item(MenuItemCreate(name="Soda", category="Drinks"))

        drinks = await catalog.list_items("Drinks")

        assert [i.name for i in drinks] == ["Soda"]

    async def test_import_creates_and_skips_nameless_rows(self, catalog):
        content = excel_bytes([
            {"Name": "Pizza", "Category": "Mains", "Price": "$12.50", "Description": "Cheesy"},
            {"Name": "", "Category": "Mains", "Price": "3", "Description": "orphan"},
            {"Name": "Salad", "Category": "", "Price": "abc", "Description": ""},
        ])

        result = await catalog.import_file("menu.xlsx", content)

        assert result.imported == 2
        assert result.total == 2
        by_name = {i.name: i for i in await catalog.list_items()}
        assert by_name["Pizza"].price == 12.5
        assert by_name["Salad"].category == "Uncategorized"
        assert by_name["Salad"].price == 0.0

    async def test_reimport_updates_in_place(self, catalog):
        original = await catalog.create_item(MenuItemCreate(name="Pizza", price=10))
        content = excel_bytes([{"Name": "pizza", "Category": "Mains", "Price": "14"}])

        result = await catalog.import_file("menu.xlsx", content)

        assert result.imported == 1
        assert result.total == 1
        [item] = await catalog.list_items()
        assert item.id == original.id
        assert item.name == "Pizza"
        assert item.price == 14.0
        assert item.category == "Mains"
