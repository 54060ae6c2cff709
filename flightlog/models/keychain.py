"""
Keychain model - cached decryption keys keyed by device serial.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, func
from sqlalchemy.orm import Mapped, mapped_column

from flightlog.models.base import Base, UtcDateTime


class Keychain(Base):
    """
    Decryption key previously fetched for an aircraft serial number.

    Upserted on fetch, never expired automatically.
    """

    __tablename__ = 'keychains'

    serial_number: Mapped[str] = mapped_column(String, primary_key=True)

    encryption_key: Mapped[str] = mapped_column(String, nullable=False)

    fetched_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(),
        server_default=func.current_timestamp(),
        comment='Last fetch timestamp'
    )

    def __repr__(self) -> str:
        return f'<Keychain {self.serial_number}>'
