# Overview: Register-to-register money transfers.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidRequestError
from ..extensions import db
from ..models import MoneyTransfer
from ..models.registers import REFERENCE_TRANSFER
from ..validation import optional_text, parse_int, parse_positive_amount, require_fields
from .balance_service import apply_balance_delta, get_register
from .concurrency import run_in_transaction


def create_transfer(*, from_register_id, to_register_id, amount, user_id: int | None, note=None) -> MoneyTransfer:
    """
    Move amount from one register to another in one transaction.

    Writes the MoneyTransfer row plus one OUTFLOW on the source and one
    INFLOW on the destination, both referencing the transfer id. Registers
    are locked in ascending id order so opposite transfers cannot deadlock.
    The source balance is checked on its locked row by the balance engine.
    Amounts are moved unconverted even if the registers' currencies differ.
    """
    require_fields(
        {"from_register_id": from_register_id, "to_register_id": to_register_id, "amount": amount},
        "from_register_id", "to_register_id", "amount",
    )
    source_id = parse_int(from_register_id, "from_register_id")
    target_id = parse_int(to_register_id, "to_register_id")
    if source_id == target_id:
        raise InvalidRequestError(
            "Cannot transfer to the same cash register",
            details={"cash_register_id": source_id},
        )
    amount = parse_positive_amount(amount)
    note = optional_text(note)

    def _op(session):
        for rid in sorted((source_id, target_id)):
            get_register(session, rid, lock=True)

        transfer = MoneyTransfer(
            from_register_id=source_id,
            to_register_id=target_id,
            user_id=user_id,
            amount=amount,
            note=note,
        )
        session.add(transfer)
        session.flush()

        apply_balance_delta(
            session,
            register_id=source_id,
            delta=-amount,
            actor_id=user_id,
            reference_type=REFERENCE_TRANSFER,
            reference_id=transfer.id,
            note=note or f"Transfer #{transfer.id} to register {target_id}",
            require_funds=True,
        )
        apply_balance_delta(
            session,
            register_id=target_id,
            delta=amount,
            actor_id=user_id,
            reference_type=REFERENCE_TRANSFER,
            reference_id=transfer.id,
            note=note or f"Transfer #{transfer.id} from register {source_id}",
        )
        return transfer

    transfer = run_in_transaction(_op)
    current_app.logger.info(
        "transfer %s of %.2f from register %s to register %s",
        transfer.id, transfer.amount, source_id, target_id,
    )
    return transfer


def list_transfers(*, cash_register_id=None, limit: int = 200) -> list[MoneyTransfer]:
    query = db.session.query(MoneyTransfer)
    if cash_register_id is not None:
        query = query.filter(
            (MoneyTransfer.from_register_id == cash_register_id)
            | (MoneyTransfer.to_register_id == cash_register_id)
        )
    return query.order_by(MoneyTransfer.id.desc()).limit(limit).all()
