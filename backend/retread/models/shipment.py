from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.orm import relationship

from retread.db import Base


class ShipmentRecord(Base):
    __tablename__ = "shipments"
    id = Column(String(64), primary_key=True)
    number = Column(String(32), nullable=False, index=True)
    send_date = Column(Date, nullable=True)
    quantity_sent = Column(Integer, nullable=False, default=0)
    # cached label, recomputed from return events on every save
    status = Column(String(32), nullable=False, default="Aguardando Retorno")
    position = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    returns = relationship(
        "ReturnEventRecord",
        back_populates="shipment",
        cascade="all, delete-orphan",
        order_by="ReturnEventRecord.position",
    )
