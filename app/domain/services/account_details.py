"""
Account Details - ``key: value`` text <-> str mapping

Users send settlement details as free text, one pair per line::

    account_name: John Doe
    account_number: 0123456789
"""
from typing import Mapping, TypeAlias

AccountDetails: TypeAlias = dict[str, str]

SEPARATOR = ":"


def parse_account_details(text: str) -> AccountDetails:
    """
    Parse ``key: value`` lines.

    Lines are trimmed and split at the first ':'; key and value are trimmed.
    Lines without a separator or with an empty key are skipped. A repeated
    key keeps its last value.
    """
    details: AccountDetails = {}
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if SEPARATOR not in line:
            continue
        key, value = line.split(SEPARATOR, 1)
        key = key.strip()
        if not key:
            continue
        details[key] = value.strip()
    return details


def looks_like_account_details(text: str) -> bool:
    return SEPARATOR in (text or "")


def format_account_details(details: Mapping[str, str]) -> str:
    """Render a mapping back into ``key: value`` lines"""
    return "\n".join(f"{key}: {value}" for key, value in details.items())
