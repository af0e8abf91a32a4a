"""Currency token detection and amount parsing.

Wallet pages render dollar amounts in several locales::

    $1,234.56     US grouping
    $1.911,36     European grouping
    $54188        plain

``parse_amount`` decides which separator is the decimal mark:

- both ``,`` and ``.`` present: the last one is the decimal mark.
- commas only, where every group after the first has exactly three digits:
  thousands separator (``$12,345``).
- dots only: thousands separator only when there are two or more dot
  groups (``$1.234.567``); a single dot is always the decimal mark, so a
  token price such as ``$1.234`` never reads as 1234.
- a single separator otherwise: decimal mark.

A minus sign directly before or after the ``$`` makes the value negative.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# "$1,234.56", "$ 1.911,36", "-$12", "$-12"; always ends on a digit
CURRENCY_TOKEN_RE = re.compile(r"(?P<neg1>-\s?)?\$\s?(?P<neg2>-\s?)?(?P<number>\d(?:[\d.,]*\d)?)")

_GROUP_RE = re.compile(r"^\d{1,3}$")


@dataclass(frozen=True)
class CurrencyToken:
    """A currency-shaped substring and its parsed value."""

    text: str
    value: float
    start: int = 0


def parse_amount(number_text: str) -> float | None:
    """Parse the numeric part of a currency token.

    Args:
        number_text: Digits and separators only, e.g. ``"1.911,36"``.

    Returns:
        The parsed value, or ``None`` when the grouping is malformed
        (e.g. ``"1,2,3"``).
    """
    s = number_text.strip()
    if not s:
        return None

    if "," in s and "." in s:
        decimal = "," if s.rfind(",") > s.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        integer, _, fraction = s.rpartition(decimal)
        if decimal in integer:
            return None
        groups = integer.split(thousands)
        if not _valid_grouping(groups):
            return None
        return _to_float("".join(groups), fraction)

    sep = "," if "," in s else "." if "." in s else ""
    if not sep:
        return _to_float(s, "")

    groups = s.split(sep)
    if (sep == "," or len(groups) > 2) and _valid_grouping(groups):
        return _to_float("".join(groups), "")
    if len(groups) == 2:
        return _to_float(groups[0], groups[1])
    return None


def _valid_grouping(groups: list[str]) -> bool:
    if len(groups) == 1:
        return groups[0].isdigit()
    return bool(_GROUP_RE.match(groups[0])) and all(len(g) == 3 and g.isdigit() for g in groups[1:])


def _to_float(integer: str, fraction: str) -> float | None:
    if not integer.isdigit() or (fraction and not fraction.isdigit()):
        return None
    return float(f"{integer}.{fraction}" if fraction else integer)


def find_currency_tokens(text: str) -> list[CurrencyToken]:
    """Return every parseable currency token in *text*, in document order."""
    tokens: list[CurrencyToken] = []
    for m in CURRENCY_TOKEN_RE.finditer(text):
        value = parse_amount(m.group("number"))
        if value is None:
            continue
        if m.group("neg1") or m.group("neg2"):
            value = -value
        tokens.append(CurrencyToken(text=m.group(0).strip(), value=value, start=m.start()))
    return tokens


def is_currency_only(line: str) -> bool:
    """Return True if *line* consists of a single currency token and nothing else."""
    m = CURRENCY_TOKEN_RE.fullmatch(line.strip())
    return m is not None and parse_amount(m.group("number")) is not None


def format_amount(value: float, currency: str = "$") -> str:
    """Render *value* in US grouping with two decimals, e.g. ``$1,234.56``."""
    sign = "-" if value < 0 else ""
    return f"{sign}{currency}{abs(value):,.2f}"
