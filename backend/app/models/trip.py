"""
Trip database model.

A trip is one transport job run on a truck identified by its registration
number. net_profit is derived and rewritten on every save.
"""

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Enum, JSON, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus


class Trip(Base):
    """
    Trip model.

    vehicle_id is the truck registration number (not a foreign key) so a trip
    survives the truck being sold off and deleted later.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Route and cargo
    source = Column(String(200), nullable=False)
    destination = Column(String(200), nullable=False)
    goods = Column(String(200), nullable=False)
    vehicle_id = Column(String(20), nullable=False, index=True)
    distance = Column(Float, nullable=True)
    start_date = Column(Date, nullable=True)
    return_date = Column(Date, nullable=True)

    # Money
    expenses = Column(JSON, nullable=False, default=dict)
    customer_payment = Column(Float, nullable=False, default=0.0)
    net_profit = Column(Float, nullable=False, default=0.0)

    # Status
    status = Column(
        Enum(TripStatus, values_callable=lambda e: [m.value for m in e]),
        default=TripStatus.PENDING,
        nullable=False,
        index=True
    )

    created_by = Column(Integer, ForeignKey('users.id', ondelete="SET NULL"), nullable=True)

    # Optimistic locking
    version = Column(Integer, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Trip(id={self.id}, vehicle='{self.vehicle_id}', status='{self.status.value}')>"
