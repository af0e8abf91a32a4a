"""Text extraction strategies for wallet headline balances.

Each strategy is a pure function of the rendered page text that yields
``RawMatch`` candidates in its own priority order.  ``extract_balance``
runs the strategies a platform profile selects, validates every candidate
against the profile's plausibility band, and returns the first one that
fits.

Strategy order per profile: labeled-value (when the profile names labels),
positional (when enabled), then opportunistic as the last resort.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol

from balancewatch.exceptions import ExtractionError, ValidationError
from balancewatch.extraction.money import find_currency_tokens, is_currency_only
from balancewatch.platforms import PlatformProfile

logger = logging.getLogger(__name__)

# Lines that carry a percentage, a date, or a rate-of-change figure.
_NOISE_RE = re.compile(
    r"%"
    r"|\b24\s?h\b"
    r"|^\s*[+\-]"
    r"|\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}\b"
    r"|\b\d{4}-\d{2}-\d{2}\b"
    r"|\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2}\b",
    re.IGNORECASE,
)

_PERCENT_CHANGE_RE = re.compile(r"[+\-]?\s?\d+(?:[.,]\d+)?\s?%")


@dataclass(frozen=True)
class RawMatch:
    """A candidate balance found by a strategy.

    Attributes:
        text: The currency token as it appeared on the page.
        value: Parsed numeric value (may be negative or out of band).
        strategy: Name of the strategy that produced it.
    """

    text: str
    value: float
    strategy: str


class Strategy(Protocol):
    """A candidate generator over page text."""

    name: str

    def candidates(self, text: str) -> Iterator[RawMatch]: ...


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def looks_like_noise(line: str) -> bool:
    """Return True for percentage, date, and rate-of-change lines."""
    return bool(_NOISE_RE.search(line))


class LabeledValueStrategy:
    """Find a label, then the first currency amount on or just below it.

    Args:
        labels: Labels to search for (case-insensitive), in priority order.
        window: Number of lines after the label line to search.
    """

    name = "labeled"

    def __init__(self, labels: Iterable[str], window: int = 5) -> None:
        self.labels = tuple(labels)
        self.window = window

    def candidates(self, text: str) -> Iterator[RawMatch]:
        lines = _lines(text)
        lowered = [line.lower() for line in lines]
        for label in self.labels:
            needle = label.lower()
            for i, line in enumerate(lowered):
                pos = line.find(needle)
                if pos < 0:
                    continue
                remainder = lines[i][pos + len(needle):]
                for token in find_currency_tokens(remainder):
                    yield RawMatch(token.text, token.value, self.name)
                for follower in lines[i + 1 : i + 1 + self.window]:
                    if looks_like_noise(follower):
                        continue
                    for token in find_currency_tokens(follower):
                        yield RawMatch(token.text, token.value, self.name)


class PositionalStrategy:
    """Headline heuristic over the top of the page.

    Within the first *max_lines* lines, a currency line followed (on the same
    line or the next) by a percentage change is the strongest signal; the
    first line that is solely a currency token comes next.
    """

    name = "positional"

    def __init__(self, max_lines: int = 15) -> None:
        self.max_lines = max_lines

    def candidates(self, text: str) -> Iterator[RawMatch]:
        head = _lines(text)[: self.max_lines]

        for i, line in enumerate(head):
            tokens = find_currency_tokens(line)
            if not tokens:
                continue
            after_token = line[tokens[0].start + len(tokens[0].text):]
            next_line = head[i + 1] if i + 1 < len(head) else ""
            if _PERCENT_CHANGE_RE.search(after_token) or (
                _PERCENT_CHANGE_RE.search(next_line) and not find_currency_tokens(next_line)
            ):
                yield RawMatch(tokens[0].text, tokens[0].value, self.name)

        for line in head:
            if is_currency_only(line):
                token = find_currency_tokens(line)[0]
                yield RawMatch(token.text, token.value, self.name)


class OpportunisticStrategy:
    """Every currency token on the page, largest first."""

    name = "opportunistic"

    def candidates(self, text: str) -> Iterator[RawMatch]:
        tokens = sorted(find_currency_tokens(text), key=lambda t: t.value, reverse=True)
        for token in tokens:
            yield RawMatch(token.text, token.value, self.name)


def strategies_for(profile: PlatformProfile) -> list[Strategy]:
    """Return the ordered text strategies for a platform profile."""
    strategies: list[Strategy] = []
    if profile.labels:
        strategies.append(LabeledValueStrategy(profile.labels))
    if profile.positional:
        strategies.append(PositionalStrategy())
    strategies.append(OpportunisticStrategy())
    return strategies


def select_candidate(candidates: Iterable[RawMatch], profile: PlatformProfile) -> RawMatch:
    """Return the first in-band candidate.

    Raises:
        ValidationError: Candidates existed but none fell inside the band.
        ExtractionError: There were no candidates at all.
    """
    rejected: list[str] = []
    for match in candidates:
        if profile.in_band(match.value):
            return match
        logger.debug(
            "Rejected %s candidate %s (outside [%s, %s))",
            match.strategy,
            match.text,
            profile.min_value,
            profile.max_value,
        )
        rejected.append(match.text)

    if rejected:
        raise ValidationError(rejected)
    raise ExtractionError("No currency-formatted value found")


def extract_balance(
    text: str,
    profile: PlatformProfile,
    strategies: Iterable[Strategy] | None = None,
) -> RawMatch:
    """Run the strategy set over *text* and return the first plausible value.

    Args:
        text: Visible page text.
        profile: Platform profile supplying the band and strategy selection.
        strategies: Explicit strategy list; defaults to ``strategies_for(profile)``.

    Raises:
        ValidationError: Candidates existed but all fell outside the band.
        ExtractionError: No candidate was found.
    """
    chosen = list(strategies) if strategies is not None else strategies_for(profile)

    def _all() -> Iterator[RawMatch]:
        for strategy in chosen:
            yield from strategy.candidates(text)

    match = select_candidate(_all(), profile)
    logger.debug("Extracted %s via %s strategy", match.text, match.strategy)
    return match
