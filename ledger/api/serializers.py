from typing import Any, Dict, List, Optional

from ledger.domain import AccountRecord, HistoryEntry, RecipientMatch, TransferResult


def serialize_account(a: AccountRecord) -> Dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "tax_id": a.tax_id,
        "balance": a.balance,
        "created_at": a.created_at,
    }


def serialize_transfer(r: TransferResult) -> Dict[str, Any]:
    return {
        "transaction_id": r.transaction_id,
        "recipient": {"name": r.recipient_name, "tax_id": r.recipient_tax_id},
        "amount": r.amount,
        "new_balance": r.new_balance,
        "created_at": r.created_at,
        "reference": r.reference,
        "replayed": r.replayed,
        "message": "Transfer already processed" if r.replayed else "Transfer completed",
    }


def serialize_history_entry(e: HistoryEntry) -> Dict[str, Any]:
    return {
        "id": e.id,
        "counterparty_id": e.counterparty_id,
        "counterparty_name": e.counterparty_name,
        "amount": e.amount,
        "created_at": e.created_at,
        "direction": e.direction.value,
    }


def serialize_history_page(entries: List[HistoryEntry], limit: int) -> Dict[str, Any]:
    next_before_id: Optional[int] = entries[-1].id if entries and len(entries) >= limit else None
    return {
        "items": [serialize_history_entry(e) for e in entries],
        "next_before_id": next_before_id,
    }


def serialize_match(m: RecipientMatch) -> Dict[str, Any]:
    return {"id": m.id, "name": m.name, "tax_id": m.tax_id}
