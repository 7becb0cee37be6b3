"""Stock and consumption rules for inventory items attached to a task.

Quantities carry one decimal place. They are rounded half-up at every
mutation boundary, so float noise never accumulates across completions.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from .errors import DuplicateName, InvalidFormat
from .models import InventoryItem

STOCK_LABEL = "在庫"
CONSUME_LABEL = "消費"

_NUMBER = r"-?\d+(?:\.\d+)?"
_STOCK_RE = re.compile(rf"^(?:{STOCK_LABEL}|stock)\s*[:=：]?\s*({_NUMBER})$", re.IGNORECASE)
_CONSUME_RE = re.compile(rf"^(?:{CONSUME_LABEL}|consume)\s*[:=：]?\s*({_NUMBER})$", re.IGNORECASE)
_BARE_RE = re.compile(rf"^({_NUMBER})$")
_LINE_SPLIT_RE = re.compile(r"\r?\n|;")


def round_quantity(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_quantity(value: float) -> str:
    """One decimal, trailing ``.0`` stripped: ``2.0 -> "2"``, ``0.5 -> "0.5"``."""
    rounded = Decimal(str(round_quantity(value))).quantize(Decimal("0.1"))
    text = format(rounded, "f")
    if text.endswith(".0"):
        text = text[:-2]
    if text == "-0":
        text = "0"
    return text


def _parse_line(line: str) -> InventoryItem:
    parts = [part.strip() for part in line.split(",")]
    name = parts[0]
    tokens = [name] + [part for part in parts[1:] if part]
    if len(tokens) < 2:
        raise InvalidFormat("在庫の形式が不正です")
    if not name:
        raise InvalidFormat("アイテム名が空です")

    stock: Optional[float] = None
    consume: Optional[float] = None
    bare: List[float] = []
    for token in tokens[1:]:
        match = _STOCK_RE.match(token)
        if match and stock is None:
            stock = float(match.group(1))
            continue
        match = _CONSUME_RE.match(token)
        if match and consume is None:
            consume = float(match.group(1))
            continue
        match = _BARE_RE.match(token)
        if match:
            bare.append(float(match.group(1)))

    # unlabeled numbers fill the gaps: consume first, then stock
    for number in bare:
        if consume is None:
            consume = number
        elif stock is None:
            stock = number

    if stock is None:
        raise InvalidFormat("在庫が指定されていません")
    if consume is None:
        raise InvalidFormat("消費が指定されていません")
    if stock < 0:
        raise InvalidFormat("在庫は0以上で入力してください")
    consume = round_quantity(consume)
    if consume <= 0:
        raise InvalidFormat("消費は0より大きい値で入力してください")
    return InventoryItem(name=name, stock=round_quantity(stock), consume=consume)


def parse_inventory_input(text: Optional[str]) -> List[InventoryItem]:
    """Parse ``name,在庫3,消費0.5`` lines (newline or ``;`` separated)."""
    if not text:
        return []
    lines = [line.strip() for line in _LINE_SPLIT_RE.split(text)]
    items = [_parse_line(line) for line in lines if line]

    seen = set()
    for item in items:
        if item.name in seen:
            raise DuplicateName(f"アイテム名が重複しています: {item.name}")
        seen.add(item.name)
    return items


def format_inventory_input(items: Iterable[InventoryItem]) -> str:
    return "\n".join(
        f"{item.name},{STOCK_LABEL}{format_quantity(item.stock)},{CONSUME_LABEL}{format_quantity(item.consume)}"
        for item in items
    )


def get_insufficient_inventory_items(items: Iterable[InventoryItem]) -> List[InventoryItem]:
    """Items that cannot cover the next consumption."""
    return [item for item in items if item.stock < item.consume]


def consume_inventory(items: Iterable[InventoryItem]) -> List[InventoryItem]:
    return [
        InventoryItem(name=item.name, stock=round_quantity(item.stock - item.consume), consume=item.consume)
        for item in items
    ]


def get_depleted_inventory_items(items: Iterable[InventoryItem]) -> List[InventoryItem]:
    return [item for item in items if item.stock <= 0]


def format_inventory_summary(items: List[InventoryItem], max_items: int = 3) -> Optional[str]:
    if not items:
        return None
    display = "・".join(f"{item.name} {format_quantity(item.stock)}" for item in items[:max_items])
    suffix = "…" if len(items) > max_items else ""
    return f"{STOCK_LABEL}: {display}{suffix}"


def format_inventory_detail(items: List[InventoryItem], max_items: int = 5) -> Optional[str]:
    if not items:
        return None
    display = ", ".join(
        f"{item.name} {STOCK_LABEL}{format_quantity(item.stock)}/{CONSUME_LABEL}{format_quantity(item.consume)}"
        for item in items[:max_items]
    )
    suffix = "…" if len(items) > max_items else ""
    return f"{STOCK_LABEL}: {display}{suffix}"


def format_inventory_shortage(items: Iterable[InventoryItem]) -> str:
    return ", ".join(
        f"{item.name}({STOCK_LABEL}{format_quantity(item.stock)}/{CONSUME_LABEL}{format_quantity(item.consume)})"
        for item in items
    )


def format_inventory_depleted(items: Iterable[InventoryItem]) -> str:
    return "・".join(item.name for item in items)
