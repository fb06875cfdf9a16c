"""Supported tokens and symbol resolution.

Upstream sources describe pools with mint addresses, single symbols, or LP
pair symbols such as ``USDC-SOL``. Everything is normalized to the small set
of tokens the tracker compares; anything else is dropped by the caller.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Optional


class SupportedToken(str, Enum):
    SOL = "SOL"
    USDC = "USDC"
    USDT = "USDT"
    JITOSOL = "JitoSOL"
    MSOL = "mSOL"

    def __str__(self) -> str:
        return self.value


SUPPORTED_SYMBOLS = [t.value for t in SupportedToken]

# Upper-cased upstream symbol -> canonical symbol
SYMBOL_ALIASES = {
    "SOL": "SOL",
    "WSOL": "SOL",
    "DSOL": "SOL",  # Drift staked SOL is tracked as SOL
    "USDC": "USDC",
    "USDT": "USDT",
    "JITOSOL": "JitoSOL",
    "MSOL": "mSOL",
}

# Stablecoins first, then the chain-native token, then liquid-staking derivatives
PAIR_PRIORITY = ["USDC", "USDT", "SOL", "JitoSOL", "mSOL"]

MINT_SYMBOLS = {
    "So11111111111111111111111111111111111111112": "SOL",
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v": "USDC",
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB": "USDT",
    "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn": "JitoSOL",
    "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So": "mSOL",
    "bSo13r4TkiE4KumL71LsHTPpL2euBYLFx6h9HP3piy1": "bSOL",
    "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN": "JUP",
    "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE": "ORCA",
    "MNDEFzGvMt87ueuHvVU9VcTqsAP5b3fTGPsHuuPA5ey": "MNDE",
    "HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3": "PYTH",
    "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263": "BONK",
    "WENWENvqqNya429ubCdR81ZmD69brwQaaBYY6p3LCpk": "WEN",
    "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R": "RAY",
    "RLBxxFkseAZ4RgJH3Sqn8jXxhmGoz9jWxDNJMh8pL7a": "RLB",
    "USDH1SM1ojwWUga67PGrgFWUHibbjqMvuMaDkRJTgkX": "USDH",
}

_PAIR_SEPARATORS = re.compile(r"[-/_\s]+")


def canonical_symbol(symbol: str | None) -> Optional[str]:
    """Map a single upstream symbol to a supported symbol, or None."""
    if not symbol:
        return None
    return SYMBOL_ALIASES.get(symbol.strip().upper())


def symbol_for_mint(mint: str | None) -> Optional[str]:
    if not mint:
        return None
    return MINT_SYMBOLS.get(mint)


def resolve_pair(symbols: Iterable[str | None]) -> Optional[str]:
    """Pick the tracked token out of a pair using the fixed priority order.

    Falls back to the first element that is supported at all (which, with the
    current enumeration, is always covered by the priority list).
    """
    canonical = [canonical_symbol(s) for s in symbols]
    present = [c for c in canonical if c]
    for preferred in PAIR_PRIORITY:
        if preferred in present:
            return preferred
    for c in present:
        if c in SUPPORTED_SYMBOLS:
            return c
    return None


def resolve_symbol(symbol: str | None) -> Optional[str]:
    """Resolve a single-token or LP pair symbol (``SOL``, ``USDC-SOL``, ``mSOL/SOL``)."""
    direct = canonical_symbol(symbol)
    if direct:
        return direct
    if not symbol:
        return None
    return resolve_pair(_PAIR_SEPARATORS.split(symbol.strip()))


def resolve_mints(*mints: str | None) -> Optional[str]:
    return resolve_pair(symbol_for_mint(m) for m in mints)


def is_supported(token: str | None) -> bool:
    return token in SUPPORTED_SYMBOLS
