from sqlalchemy import Column, Date, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from retread.db import Base


class ReturnEventRecord(Base):
    __tablename__ = "return_events"
    id = Column(String(64), primary_key=True)
    shipment_id = Column(
        String(64),
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = Column(Date, nullable=True)
    invoice_number = Column(String(128), nullable=False, default="")
    reformed = Column(Integer, nullable=False, default=0)
    repaired = Column(Integer, nullable=False, default=0)
    exchanged = Column(Integer, nullable=False, default=0)
    failed = Column(Integer, nullable=False, default=0)
    bonuses_redeemed = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)  # display order only

    shipment = relationship("ShipmentRecord", back_populates="returns")
