from .formatting import format_date, format_money

__all__ = [
    "format_date",
    "format_money",
]
