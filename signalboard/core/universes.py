"""Instrument universes and market-symbol qualification."""

from __future__ import annotations

from enum import Enum


class Universe(str, Enum):
    """Supported instrument universes."""

    BIST100 = "BIST100"
    NASDAQ100 = "NASDAQ100"
    NASDAQ300 = "NASDAQ300"
    ETF = "ETF"

    @classmethod
    def parse(cls, value: str | None, default: "Universe | None" = None) -> "Universe":
        """Case-insensitive lookup falling back to ``default`` (BIST100)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return default or cls.BIST100


BIST100 = [
    "AKBNK", "ALARK", "ARCLK", "ASELS", "BIMAS", "BRYAT", "CIMSA", "DOAS", "EKGYO",
    "ENJSA", "EREGL", "FROTO", "GARAN", "GUBRF", "HALKB", "HEKTS", "ISCTR", "KCHOL",
    "KOZAA", "KOZAL", "KRDMD", "MGROS", "PETKM", "SAHOL", "SISE", "TCELL", "THYAO",
    "TOASO", "TTKOM", "TUPRS", "YKBNK",
]

NASDAQ100 = [
    "AAPL", "MSFT", "NVDA", "AMZN", "META", "GOOG", "GOOGL", "TSLA", "NFLX", "ADBE",
    "AMD", "INTU", "PEP", "QCOM", "AMGN", "ADI", "CSCO", "TMUS", "REGN", "VRTX",
    "SNPS", "CDNS", "PANW", "CRWD", "MU", "LRCX", "KLAC", "ASML", "AVGO", "TXN",
]

UNIVERSE_MEMBERS: dict[Universe, list[str]] = {
    Universe.BIST100: BIST100,
    Universe.NASDAQ100: NASDAQ100,
}

# Exchange prefixes (as sent by charting tools) that map to the Istanbul suffix
_IS_PREFIXES = {"BIST", "BIST_DLY"}


def plain_symbol(symbol: str) -> str:
    """Strip an ``EXCHANGE:`` prefix and upper-case: ``bist:thyao`` -> ``THYAO``."""
    s = str(symbol or "").strip()
    _, sep, rest = s.partition(":")
    return (rest if sep else s).strip().upper()


def to_market_symbol(symbol: str, universe: Universe | str | None = None) -> str:
    """Qualify a symbol for the financial-data provider.

    ``BIST:THYAO`` -> ``THYAO.IS``; ``THYAO`` in BIST100 -> ``THYAO.IS``;
    symbols that already carry a suffix are left alone.
    """
    s = str(symbol or "").strip()
    if not s:
        return s
    prefix, sep, rest = s.partition(":")
    if sep:
        if prefix.upper() in _IS_PREFIXES:
            return f"{rest.strip().upper()}.IS"
        s = rest.strip()
    s = s.upper()
    if "." in s:
        return s
    if universe is not None and Universe.parse(universe) is Universe.BIST100:
        return f"{s}.IS"
    return s
