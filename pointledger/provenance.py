"""
Provenance tags carried in LedgerEntry.reason.

The reason column is free text. A few structured prefixes mark where an
entry came from so history screens and consistency checks can classify it
without a foreign key. Prefixes match the data already written by the
mobile client and must not change.
"""

import re
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from .models import EntryKind, LedgerEntry

SELF_SCORE_PREFIX = "自我加分："
REDEMPTION_PREFIX = "兑换："
REDEMPTION_ROLLBACK_PREFIX = "兑换撤销："

_REQUEST_TAG = re.compile(r"\s#([0-9a-fA-F-]{36})$")


@dataclass(frozen=True)
class Provenance:
    kind: EntryKind
    subject: str
    request_id: Optional[UUID] = None


def self_score_reason(label: str) -> str:
    return f"{SELF_SCORE_PREFIX}{label}"


def redemption_reason(reward_name: str, request_id: UUID) -> str:
    return f"{REDEMPTION_PREFIX}{reward_name} #{request_id}"


def redemption_rollback_reason(reward_name: str, request_id: UUID) -> str:
    return f"{REDEMPTION_ROLLBACK_PREFIX}{reward_name} #{request_id}"


def _split_request_tag(text: str) -> tuple[str, Optional[UUID]]:
    match = _REQUEST_TAG.search(text)
    if not match:
        return text, None
    try:
        request_id = UUID(match.group(1))
    except ValueError:
        return text, None
    return text[:match.start()], request_id


def parse_reason(reason: str, amount: int = 0) -> Provenance:
    if reason.startswith(REDEMPTION_ROLLBACK_PREFIX):
        subject, request_id = _split_request_tag(reason[len(REDEMPTION_ROLLBACK_PREFIX):])
        return Provenance(EntryKind.REDEMPTION_ROLLBACK, subject, request_id)
    if reason.startswith(REDEMPTION_PREFIX):
        subject, request_id = _split_request_tag(reason[len(REDEMPTION_PREFIX):])
        return Provenance(EntryKind.REDEMPTION, subject, request_id)
    if reason.startswith(SELF_SCORE_PREFIX):
        return Provenance(EntryKind.SELF_SCORE, reason[len(SELF_SCORE_PREFIX):])
    if amount > 0:
        return Provenance(EntryKind.ADMIN_AWARD, reason)
    if amount < 0:
        return Provenance(EntryKind.ADMIN_DEDUCTION, reason)
    return Provenance(EntryKind.OTHER, reason)


def is_self_score(entry: LedgerEntry) -> bool:
    return entry.reason.startswith(SELF_SCORE_PREFIX)


def describe_entry(entry: LedgerEntry) -> tuple[EntryKind, str]:
    """Return the entry's kind and the title shown in member history."""
    prov = parse_reason(entry.reason, entry.amount)
    if prov.kind == EntryKind.SELF_SCORE:
        return prov.kind, f"{prov.subject} · 自我奖励"
    if prov.kind == EntryKind.REDEMPTION:
        return prov.kind, f"兑换「{prov.subject}」"
    if prov.kind == EntryKind.REDEMPTION_ROLLBACK:
        return prov.kind, f"兑换撤销「{prov.subject}」"
    if prov.kind == EntryKind.ADMIN_AWARD:
        return prov.kind, f"管理员奖励：{prov.subject}"
    if prov.kind == EntryKind.ADMIN_DEDUCTION:
        return prov.kind, f"管理员扣分：{prov.subject}"
    return prov.kind, prov.subject
