"""Balance extraction from rendered page text and screenshots."""

from balancewatch.extraction.money import find_currency_tokens, parse_amount
from balancewatch.extraction.strategies import RawMatch, extract_balance, strategies_for

__all__ = ["RawMatch", "extract_balance", "find_currency_tokens", "parse_amount", "strategies_for"]
