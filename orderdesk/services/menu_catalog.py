"""
Menu Catalog

Menu CRUD plus bulk import from a spreadsheet.

Import rules:
- first sheet of an Excel workbook, or a CSV file
- headers matched case-insensitively against known synonyms
- rows without a name are skipped
- a name already on the menu (case-insensitive) updates that item in place
- price keeps only digits, '.' and '-' before parsing; anything
  unparseable (or negative) becomes 0
"""

import io
import logging
import re
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from orderdesk.core.exceptions import NotFoundError, ValidationError
from orderdesk.repository import OrderDeskStore, new_id
from orderdesk.schemas import MenuItem, MenuItemCreate, MenuItemUpdate, MenuImportResponse

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY = "Uncategorized"

COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "name": ("name", "item"),
    "category": ("category",),
    "price": ("price",),
    "description": ("description", "desc"),
}

_PRICE_NOISE = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)")


def parse_price(value: Any) -> float:
    """Lenient price parsing: ``"$12.50"`` -> 12.5, garbage -> 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        match = _LEADING_NUMBER.match(_PRICE_NOISE.sub("", str(value)))
        if not match:
            return 0.0
        price = float(match.group(0))

    # NaN compares unequal to itself
    if price != price or price in (float("inf"), float("-inf")) or price < 0:
        return 0.0
    return price


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


# =============================================================================
# SPREADSHEET READING
# =============================================================================

def read_menu_rows(filename: str, content: bytes) -> list[dict[str, str]]:
    """
    Read the first sheet and map its columns onto menu fields.

    Returns one dict per row with keys name/category/price/description
    (empty string when the column is missing or the cell is blank).
    """
    buffer = io.BytesIO(content)
    suffix = Path(filename or "").suffix.lower()

    try:
        if suffix == ".csv":
            df = pd.read_csv(buffer, dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(buffer, sheet_name=0, dtype=str, keep_default_na=False)
    except Exception as e:
        logger.warning(f"Failed to parse menu file {filename}: {e}")
        raise ValidationError(f"Failed to parse file: {e}") from e

    df = df.fillna("")

    # field -> matching columns, in synonym order
    columns: dict[str, list[Any]] = {}
    for field, synonyms in COLUMN_SYNONYMS.items():
        columns[field] = [
            col
            for synonym in synonyms
            for col in df.columns
            if str(col).strip().lower() == synonym
        ]

    rows = []
    for record in df.to_dict("records"):
        row = {}
        for field, matches in columns.items():
            value = ""
            for col in matches:
                cell = str(record.get(col, "") or "").strip()
                if cell:
                    value = cell
                    break
            row[field] = value
        rows.append(row)

    logger.debug(f"Read {len(rows)} row(s) from {filename}")
    return rows


# =============================================================================
# CATALOG
# =============================================================================

class MenuCatalog:
    """Menu operations behind /api/menu."""

    def __init__(self, store: OrderDeskStore):
        self.store = store

    async def list_items(self, category: Optional[str] = None) -> list[MenuItem]:
        return await self.store.get_menu(category)

    async def create_item(self, payload: MenuItemCreate) -> MenuItem:
        if not payload.name or not payload.name.strip():
            raise ValidationError("name is required")

        item = MenuItem(
            id=new_id("menu_"),
            name=payload.name.strip(),
            category=payload.category or DEFAULT_CATEGORY,
            price=parse_price(payload.price),
            description=payload.description or "",
            available=True,
        )
        await self.store.save_menu_item(item)
        logger.info(f"Menu item {item.id} created: {item.name}")
        return item

    async def update_item(self, item_id: str, payload: MenuItemUpdate) -> MenuItem:
        item = await self.store.get_menu_item(item_id)
        if item is None:
            raise NotFoundError("Menu item not found")

        changes: dict[str, Any] = {}
        sent = payload.model_dump(exclude_unset=True)

        if "name" in sent:
            name = str(sent["name"] or "").strip()
            if not name:
                raise ValidationError("name cannot be empty")
            changes["name"] = name
        if "category" in sent:
            changes["category"] = str(sent["category"] or "") or DEFAULT_CATEGORY
        if "price" in sent:
            changes["price"] = parse_price(sent["price"])
        if "description" in sent:
            changes["description"] = str(sent["description"] or "")
        if "available" in sent:
            changes["available"] = _parse_flag(sent["available"])

        updated = item.model_copy(update=changes)
        await self.store.save_menu_item(updated)
        logger.info(f"Menu item {item_id} updated: {sorted(changes)}")
        return updated

    async def delete_item(self, item_id: str) -> None:
        if not await self.store.delete_menu_item(item_id):
            raise NotFoundError("Menu item not found")
        logger.info(f"Menu item {item_id} deleted")

    async def import_file(self, filename: str, content: bytes) -> MenuImportResponse:
        """Create or update menu items from a spreadsheet."""
        rows = read_menu_rows(filename, content)

        menu = await self.store.get_menu()
        by_name = {m.name.lower(): m for m in menu}
        imported: list[MenuItem] = []

        for row in rows:
            name = row["name"]
            if not name:
                continue

            category = row["category"] or DEFAULT_CATEGORY
            price = parse_price(row["price"])
            description = row["description"]

            existing = by_name.get(name.lower())
            if existing is not None:
                existing.category = category
                existing.price = price
                existing.description = description
                imported.append(existing)
            else:
                item = MenuItem(
                    id=new_id("menu_"),
                    name=name,
                    category=category,
                    price=price,
                    description=description,
                    available=True,
                )
                menu.append(item)
                by_name[name.lower()] = item
                imported.append(item)

        touched = list({item.id: item for item in imported}.values())
        await self.store.save_menu(touched)

        logger.info(f"Imported {len(imported)} menu row(s) from {filename}; menu has {len(menu)} item(s)")
        return MenuImportResponse(imported=len(imported), total=len(menu), items=menu)
