"""
Invoice totals: HT subtotal, 19% TVA, stamp duty and discount
"""
from typing import Any, Iterable, Mapping, Optional

TVA_RATE = 0.19
DEFAULT_TIMBRE = 0.1
DEFAULT_REMISE = 0.0


def safe_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _item_total(item: Any) -> float:
    if isinstance(item, Mapping):
        return safe_float(item.get("totalPrice"))
    return safe_float(getattr(item, "total_price", None))


def calc_totals(
    items: Optional[Iterable[Any]],
    timbre: Any = None,
    total_remise: Any = None,
) -> dict:
    # items are either LineItem models or stored mappings
    total_ht = sum((_item_total(i) for i in (items or [])), 0.0)
    total_tva = total_ht * TVA_RATE
    timbre = DEFAULT_TIMBRE if timbre is None else safe_float(timbre)
    total_remise = DEFAULT_REMISE if total_remise is None else safe_float(total_remise)
    total_ttc = total_ht + total_tva + timbre - total_remise
    return {
        "totalHT": total_ht,
        "totalTVA": total_tva,
        "timbre": timbre,
        "totalRemise": total_remise,
        "totalTTC": total_ttc,
    }
