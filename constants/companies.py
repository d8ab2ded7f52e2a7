"""
Company alias table for bitcoin-mining and infrastructure names.

COMPANY_ALIASES is ordered: the resolver walks it top to bottom and the
first ticker with a matching alias wins. Aliases are matched as whole words
ignoring case, except the symbols in CASE_SENSITIVE_SYMBOLS (and one-word
names spelled like them), which are also English words and match with
exact case only ("CAN" or "Riot", not "can" or "riot").
"""

COMPANY_ALIASES: dict[str, list[str]] = {
    "MARA": ["Marathon Digital", "Marathon Holdings", "Marathon", "MARA"],
    "RIOT": ["Riot Platforms", "Riot Blockchain", "Riot", "RIOT"],
    "CORZ": ["Core Scientific", "CORZ"],
    "BTDR": ["Bitdeer", "BTDR"],
    "CLSK": ["CleanSpark", "Clean Spark", "CLSK"],
    "IREN": ["Iris Energy", "IREN"],
    "HUT": ["Hut 8", "Hut8", "HUT"],
    "WULF": ["TeraWulf", "Tera Wulf", "WULF"],
    "CIFR": ["Cipher Mining", "CIFR"],
    "FUFU": ["BitFuFu", "Fusionist", "FUFU"],
    "BITF": ["Bitfarms", "BITF"],
    "BTBT": ["Bit Digital", "BTBT"],
    "CANG": ["Canaan Creative", "CANG"],
    "CAN": ["Canaan", "CAN"],
    "ARBK": ["Argo Blockchain", "Ark Global", "ARBK"],
    "PHX": ["Phoenix Group", "PHX"],
    "NB2": ["Northern Data", "NB2"],
    "HIVE": ["HIVE Digital", "Hive Blockchain", "HIVE"],
}

COMPANY_NAME_MAP: dict[str, str] = {
    "MARA": "Marathon Digital",
    "RIOT": "Riot Platforms",
    "CORZ": "Core Scientific",
    "BTDR": "Bitdeer Technologies",
    "CLSK": "CleanSpark",
    "IREN": "IREN",
    "HUT": "Hut 8 Mining",
    "WULF": "TeraWulf",
    "CIFR": "Cipher Mining",
    "FUFU": "BitFuFu",
    "BITF": "Bitfarms",
    "BTBT": "Bit Digital",
    "CAN": "Canaan",
    "CANG": "Canaan Inc",
    "ARBK": "Argo Blockchain",
    "PHX": "Phoenix Group",
    "NB2": "Northern Data",
    "HIVE": "HIVE Digital",
}

NON_NASDAQ_COMPANIES = ["PHX", "NB2", "HIVE"]

CASE_SENSITIVE_SYMBOLS = frozenset({"CAN", "HUT", "HIVE", "RIOT"})


def get_company_name(ticker: str) -> str:
    """Display name for a ticker, falling back to the ticker itself."""
    return COMPANY_NAME_MAP.get(ticker, ticker)


def is_nasdaq_listed(ticker: str) -> bool:
    return ticker not in NON_NASDAQ_COMPANIES
