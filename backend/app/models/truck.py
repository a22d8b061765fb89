"""
Truck database model.

Trucks are bought, run on trips, and eventually resold. resale_profit is
derived and stays NULL until a sale price is recorded.
"""

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Enum, JSON, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.truck_enums import TruckStatus


class Truck(Base):
    """
    Truck model.

    Nested documents (seller, payments, documents, expenses, sale) are JSON
    columns; they are only ever read and written whole.
    """
    __tablename__ = "trucks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Identification
    registration_number = Column(String(20), unique=True, nullable=False, index=True)
    model = Column(String(100), nullable=False)
    model_year = Column(Integer, nullable=True)

    # Purchase
    seller = Column(JSON, nullable=False, default=dict)
    purchase_date = Column(Date, nullable=False)
    purchase_price = Column(Float, nullable=False)
    purchase_payments = Column(JSON, nullable=False, default=list)
    documents = Column(JSON, nullable=False, default=dict)
    expenses = Column(JSON, nullable=False, default=dict)

    # Resale
    sale = Column(JSON, nullable=True)
    resale_profit = Column(Float, nullable=True)

    # Status
    status = Column(
        Enum(TruckStatus, values_callable=lambda e: [m.value for m in e]),
        default=TruckStatus.AVAILABLE,
        nullable=False,
        index=True
    )
    last_trip_date = Column(Date, nullable=True)

    created_by = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)

    # Optimistic locking
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Truck(id={self.id}, registration='{self.registration_number}', status='{self.status.value}')>"
