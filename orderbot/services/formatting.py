from __future__ import annotations

import math
import time
from decimal import Decimal
from typing import Iterable

from ..models import CartLine

CATEGORY_EMOJIS = {
    "momos": "🥟",
    "noodles": "🍜",
    "rice": "🍚",
    "beverages": "☕",
}
DEFAULT_CATEGORY_EMOJI = "🍽️"
DIVIDER = "━━━━━━━━━━━━━━━"

# WhatsApp list limits
LIST_TITLE_LIMIT = 24
LIST_DESCRIPTION_LIMIT = 72
LIST_ROW_LIMIT = 10

ORDER_STATUS_EMOJIS = {
    "created": "🆕",
    "confirmed": "✅",
    "preparing": "👨‍🍳",
    "delivered": "📦",
    "completed": "✔️",
    "cancelled": "❌",
}


def format_price(amount: float, currency: str = "Rs.") -> str:
    if float(amount).is_integer():
        return f"{currency}{int(amount)}"
    return f"{currency}{amount:.2f}"


def category_emoji(category: str) -> str:
    return CATEGORY_EMOJIS.get(category.lower(), DEFAULT_CATEGORY_EMOJI)


def category_title(category: str) -> str:
    return f"{category[:1].upper()}{category[1:]} {category_emoji(category)}"


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def cart_lines_text(lines: Iterable[CartLine], currency: str = "Rs.") -> str:
    return "\n".join(
        f"• {line.name} x{line.quantity} - {format_price(line.subtotal, currency)}" for line in lines
    )


def compute_deposit(total: float, rate: float) -> int:
    """Deposit rounded up to a whole amount; decimal math keeps 0.2 * 1000 exact."""

    return math.ceil(Decimal(str(total)) * Decimal(str(rate)))


def fallback_order_id(prefix: str, now_ms: int | None = None) -> str:
    """Locally generated order reference used when order persistence fails."""

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}{str(stamp)[-6:]}"
