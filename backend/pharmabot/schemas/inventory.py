from datetime import date

from pydantic import BaseModel


class MedicineRecord(BaseModel):
    id: int
    name: str
    stock: int
    expiry_date: date

    class Config:
        from_attributes = True
