"""
Ticker Resolver

Maps post text to a company ticker through the static alias table.
"""
import re
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from constants import CASE_SENSITIVE_SYMBOLS, COMPANY_ALIASES


def _alias_pattern(alias: str, case_sensitive: frozenset) -> Pattern:
    flags = 0 if alias.upper() in case_sensitive else re.IGNORECASE
    return re.compile(rf"(?<![A-Za-z0-9]){re.escape(alias)}(?![A-Za-z0-9])", flags)


class TickerResolver:
    """
    Resolve free text to at most one ticker.

    The alias table is walked in insertion order and the first ticker with
    any matching alias wins, so overlapping names always resolve the same way.
    """

    def __init__(
        self,
        aliases: Optional[Dict[str, List[str]]] = None,
        case_sensitive: Optional[Iterable[str]] = None,
    ):
        table = COMPANY_ALIASES if aliases is None else aliases
        exact = frozenset(CASE_SENSITIVE_SYMBOLS if case_sensitive is None else case_sensitive)
        self._patterns: List[Tuple[str, List[Pattern]]] = [
            (ticker, [_alias_pattern(a, exact) for a in [*names, ticker]])
            for ticker, names in table.items()
        ]

    def resolve(self, title: str, body: str = "") -> Optional[str]:
        text = f"{title or ''}\n{body or ''}"
        for ticker, patterns in self._patterns:
            if any(p.search(text) for p in patterns):
                return ticker
        return None
