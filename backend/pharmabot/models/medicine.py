from datetime import date

from sqlalchemy import CheckConstraint, Column, Date, Integer, String

from pharmabot.db.base import Base


class Medicine(Base):
    """
    Catalog entry for one drug/strength with its stock counter.

    `stock` only changes through conditional updates in the inventory
    service; the CHECK constraint is the last line against going negative.
    """
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_medicines_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    stock = Column(Integer, nullable=False, default=0)
    expiry_date = Column(Date, nullable=False)

    def is_expired(self, today: date | None = None) -> bool:
        return self.expiry_date < (today or date.today())

    def __repr__(self):
        return f"<Medicine id={self.id} name={self.name!r} stock={self.stock}>"
