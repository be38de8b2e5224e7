# backend/slotbook/models/tables.py

from sqlalchemy import Column, Index, Integer, Text, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()
metadata = Base.metadata


class Customers(Base):
    __tablename__ = 'customers'

    id = Column(Integer, primary_key=True)
    line_user_id = Column(Text, nullable=False, server_default=text("''"))
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
    last_booking = Column(Text, nullable=False, server_default=text("''"))
    total_bookings = Column(Integer, nullable=False, server_default=text('0'))


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index('ix_bookings_date', 'date'),
        Index('ix_bookings_user_id', 'user_id'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    time = Column(Text, nullable=False)  # HH:MM
    services = Column(Text, nullable=False, server_default=text("''"))
    removal = Column(Text, nullable=False, server_default=text("''"))
    extension = Column(Text, nullable=False, server_default=text("''"))
    remarks = Column(Text, nullable=False, server_default=text("''"))
    created_at = Column(Text, nullable=False)
    event_id = Column(Text, nullable=False, server_default=text("''"))
