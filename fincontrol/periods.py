from __future__ import annotations

import calendar
from datetime import date, timedelta

MONTH_SHORT_NAMES = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]
MONTH_NAMES = [
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
]
# Sunday first, matching the weekday numbering used by the reports.
WEEKDAY_SHORT_NAMES = ["Dom", "Seg", "Ter", "Qua", "Qui", "Sex", "Sáb"]
WEEKDAY_NAMES = ["Domingo", "Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado"]


def month_start(value: date) -> date:
    return value.replace(day=1)


def shift_month(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)


def shift_month_keep_day(value: date, months: int) -> date:
    month_index = (value.year * 12 + value.month - 1) + months
    year = month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def month_end(value: date) -> date:
    return shift_month(month_start(value), 1) - timedelta(days=1)


def iter_months(start_value: date, end_value: date) -> list[date]:
    months: list[date] = []
    cursor = month_start(start_value)
    end_month = month_start(end_value)
    while cursor <= end_month:
        months.append(cursor)
        cursor = shift_month(cursor, 1)
    return months


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, days_in_month(year, month)))


def months_between(start_value: date, end_value: date) -> int:
    """Whole calendar months from start_value to end_value (negative when reversed)."""
    months = (end_value.year - start_value.year) * 12 + (end_value.month - start_value.month)
    if months > 0 and end_value.day < start_value.day:
        months -= 1
    elif months < 0 and end_value.day > start_value.day:
        months += 1
    return months


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def day_key(value: date) -> str:
    return value.isoformat()


def weekday_index(value: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def month_label(value: date) -> str:
    return f"{MONTH_SHORT_NAMES[value.month - 1]}/{value.year % 100:02d}"
