"""Tests for resolving post text to a company ticker."""
import pytest

from constants import COMPANY_ALIASES
from processor.ticker_resolver import TickerResolver


@pytest.fixture()
def resolver():
    return TickerResolver()


def test_company_name_in_title_resolves(resolver):
    assert resolver.resolve("Marathon Digital expands capacity", "") == "MARA"


def test_unrecognised_text_resolves_to_none(resolver):
    assert resolver.resolve("Bitcoin difficulty hits new high", "Network hashrate keeps climbing.") is None


def test_name_match_ignores_case(resolver):
    assert resolver.resolve("cleanspark buys sites in georgia", "") == "CLSK"


def test_body_is_searched_too(resolver):
    assert resolver.resolve("Miner signs power deal", "Cipher Mining agreed a 300 MW contract.") == "CIFR"


def test_symbol_matches_in_any_case(resolver):
    assert resolver.resolve("IREN adds 10 EH/s", "") == "IREN"
    assert resolver.resolve("Iren posts record revenue", "") == "IREN"
    assert resolver.resolve("analysts upgrade iren", "") == "IREN"


def test_symbols_that_are_words_need_exact_case(resolver):
    assert resolver.resolve("RIOT shares jump", "") == "RIOT"
    assert resolver.resolve("Miners can expect a tough quarter", "") is None
    assert resolver.resolve("A hut full of rigs", "") is None
    assert resolver.resolve("Police clash with a riot in town", "") is None


def test_custom_case_sensitive_symbols():
    resolver = TickerResolver({"GO": ["GO"]}, case_sensitive={"GO"})
    assert resolver.resolve("Miners go all in", "") is None
    assert resolver.resolve("GO reports output", "") == "GO"


def test_ticker_inside_longer_word_does_not_match(resolver):
    assert resolver.resolve("HUTCHISON reports earnings", "") is None


def test_first_registered_company_wins(resolver):
    text = "Riot Platforms and Marathon Digital both added hashrate"
    assert list(COMPANY_ALIASES).index("MARA") < list(COMPANY_ALIASES).index("RIOT")
    assert resolver.resolve(text, "") == "MARA"


def test_longer_name_registered_first_takes_precedence(resolver):
    assert resolver.resolve("Canaan Creative ships new rigs", "") == "CANG"
    assert resolver.resolve("Canaan ships new rigs", "") == "CAN"


def test_custom_alias_table():
    resolver = TickerResolver({"AAA": ["Alpha Mining"], "BBB": ["Beta"]})
    assert resolver.resolve("alpha mining and beta", "") == "AAA"
    assert resolver.resolve("News about BBB", "") == "BBB"
    assert resolver.resolve("Marathon Digital", "") is None


def test_handles_missing_text(resolver):
    assert resolver.resolve(None, None) is None
