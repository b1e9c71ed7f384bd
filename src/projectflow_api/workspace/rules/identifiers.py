"""
Identifier Generation

Human-readable, per-tenant identifiers:

    employee  WB-001
    task      WB-TSK-001
    project   WB-Pr-1
    phase     WB-ph-1

The numeric part is reserved atomically by ``SequenceRepository.next_value``;
the helpers here derive the prefix, read suffixes, and format the result.
"""

import re
from typing import Iterable
from typing import Optional

from projectflow_api.workspace.enums import SequenceKind

_TRAILING_NUMBER = re.compile(r"(\d+)$")

ID_FORMATS = {
    SequenceKind.EMPLOYEE: "{initials}-{number:03d}",
    SequenceKind.TASK: "{initials}-TSK-{number:03d}",
    SequenceKind.PROJECT: "{initials}-Pr-{number}",
    SequenceKind.PHASE: "{initials}-ph-{number}",
}


def company_initials(company_name: str) -> str:
    """Uppercase first letter of each whitespace-separated word ("Web Blaze" -> "WB")."""
    return "".join(word[0].upper() for word in company_name.split())


def trailing_number(identifier: str) -> Optional[int]:
    match = _TRAILING_NUMBER.search(identifier or "")
    return int(match.group(1)) if match else None


def highest_suffix(identifiers: Iterable[str]) -> int:
    """
    Highest trailing integer among ``identifiers`` (0 when none).

    Compared numerically so that "WB-010" outranks "WB-002".
    """
    numbers = [n for n in (trailing_number(i) for i in identifiers) if n is not None]
    return max(numbers, default=0)


def format_identifier(kind: SequenceKind, company_name: str, number: int) -> str:
    return ID_FORMATS[kind].format(initials=company_initials(company_name), number=number)
