"""Inventory listing for the pharmacy dashboard."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmabot.api.deps import get_db
from pharmabot.core.exceptions import BusinessError, PharmacyError
from pharmabot.schemas.inventory import MedicineRecord
from pharmabot.services.inventory_service import get_medicine, list_medicines

router = APIRouter()


@router.get("", response_model=list[MedicineRecord])
def list_inventory(
    include_expired: bool = Query(True),
    search: str | None = Query(None),
    db: Session = Depends(get_db),
):
    """Medicines ordered by name, optionally without expired stock."""
    try:
        return list_medicines(db, include_expired=include_expired, search=search)
    except PharmacyError as e:
        raise BusinessError.from_domain(e)


@router.get("/{medicine_id}", response_model=MedicineRecord)
def read_medicine(medicine_id: int, db: Session = Depends(get_db)):
    try:
        return get_medicine(db, medicine_id)
    except PharmacyError as e:
        raise BusinessError.from_domain(e)
