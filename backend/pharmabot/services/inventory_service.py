"""Inventory read/update. Stock changes are conditional UPDATEs, never read-modify-write."""
import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmabot.core.exceptions import (
    InsufficientStock,
    InvalidQuantity,
    MedicineNotFound,
    StorageUnavailable,
)
from pharmabot.models.medicine import Medicine

logger = logging.getLogger(__name__)


def _read_failed(db: Session, action: str, error: SQLAlchemyError) -> StorageUnavailable:
    db.rollback()
    logger.error(f"[Inventory] {action} failed: {type(error).__name__}: {error}", exc_info=True)
    return StorageUnavailable()


def _like_pattern(text: str, contains: bool = False) -> str:
    """Escape LIKE wildcards in user text; match with escape="\\"."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%" if contains else escaped


def _require_positive(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidQuantity(amount)
    return amount


def get_medicine(db: Session, medicine_id: int) -> Medicine:
    try:
        medicine = db.query(Medicine).filter(Medicine.id == medicine_id).first()
    except SQLAlchemyError as e:
        raise _read_failed(db, f"Loading medicine {medicine_id}", e) from e
    if medicine is None:
        raise MedicineNotFound(medicine_id)
    return medicine


def list_medicines(
    db: Session,
    include_expired: bool = True,
    today: date | None = None,
    search: str | None = None,
) -> list[Medicine]:
    """Medicines ordered by name, for display."""
    try:
        q = db.query(Medicine)
        if not include_expired:
            q = q.filter(Medicine.expiry_date >= (today or date.today()))
        if search:
            q = q.filter(Medicine.name.ilike(_like_pattern(search, contains=True), escape="\\"))
        return q.order_by(Medicine.name).all()
    except SQLAlchemyError as e:
        raise _read_failed(db, "Listing medicines", e) from e


def _match_medicine(db: Session, query: str) -> Medicine | None:
    if query.isdecimal():
        medicine = db.query(Medicine).filter(Medicine.id == int(query)).first()
        if medicine:
            return medicine

    medicine = db.query(Medicine).filter(Medicine.name == query).first()
    if medicine:
        return medicine

    medicine = (
        db.query(Medicine)
        .filter(Medicine.name.ilike(_like_pattern(query), escape="\\"))
        .order_by(Medicine.id)
        .first()
    )
    if medicine:
        return medicine

    medicine = (
        db.query(Medicine)
        .filter(Medicine.name.ilike(_like_pattern(query, contains=True), escape="\\"))
        .order_by(Medicine.id)
        .first()
    )
    if medicine:
        logger.info(f"[Inventory] Fuzzy match: '{query}' -> '{medicine.name}' (id={medicine.id})")
    return medicine


def find_medicine(db: Session, query: str) -> Medicine | None:
    """
    Resolve free text from a chat message to one medicine.

    Priority: numeric id, exact name, case-insensitive name, then substring
    match (lowest id wins so the answer is deterministic). `%` and `_` in
    the text match themselves.
    """
    query = (query or "").strip()
    if not query:
        return None
    try:
        return _match_medicine(db, query)
    except SQLAlchemyError as e:
        raise _read_failed(db, f"Looking up medicine '{query}'", e) from e


def decrement_stock(db: Session, medicine_id: int, amount: int, commit: bool = True) -> None:
    """
    Take `amount` units out of stock in one conditional UPDATE.

    The WHERE clause re-checks stock inside the database, so two concurrent
    callers can never jointly overdraw. On failure stock is left untouched.
    With commit=False the caller owns the transaction.
    """
    amount = _require_positive(amount)
    try:
        updated = (
            db.query(Medicine)
            .filter(Medicine.id == medicine_id, Medicine.stock >= amount)
            .update({Medicine.stock: Medicine.stock - amount}, synchronize_session=False)
        )
        if updated == 0:
            row = db.query(Medicine.stock).filter(Medicine.id == medicine_id).first()
            if commit:
                db.rollback()
            if row is None:
                raise MedicineNotFound(medicine_id)
            raise InsufficientStock(medicine_id, requested=amount, available=row.stock)
        if commit:
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[Inventory] Stock decrement failed for medicine {medicine_id}: {e}", exc_info=True)
        raise StorageUnavailable() from e

    logger.info(f"[Inventory] Decremented medicine {medicine_id} by {amount}")


def increment_stock(db: Session, medicine_id: int, amount: int, commit: bool = True) -> None:
    """Return units to stock, e.g. when a pending order is cancelled."""
    amount = _require_positive(amount)
    try:
        updated = (
            db.query(Medicine)
            .filter(Medicine.id == medicine_id)
            .update({Medicine.stock: Medicine.stock + amount}, synchronize_session=False)
        )
        if updated == 0:
            if commit:
                db.rollback()
            raise MedicineNotFound(medicine_id)
        if commit:
            db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[Inventory] Stock increment failed for medicine {medicine_id}: {e}", exc_info=True)
        raise StorageUnavailable() from e

    logger.info(f"[Inventory] Incremented medicine {medicine_id} by {amount}")
