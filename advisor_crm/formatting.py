from __future__ import annotations

from datetime import datetime


def format_brl(amount: float) -> str:
    integer_part, decimal_part = f"{amount:,.2f}".split(".")
    return f"R$ {integer_part.replace(',', '.')},{decimal_part}"


def format_date_br(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")
