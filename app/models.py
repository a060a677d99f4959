"""
Table model for the session store.
"""
from sqlalchemy import Column, String, DateTime, Integer, Text

from database import Base


class SessionRecord(Base):
    """
    One row per browser session.

    - session_id: opaque id carried by the session_id cookie, primary key.
    - user_id: Google account id from userinfo.
    - data: Fernet-encrypted JSON of SessionData (token response and cached
      profile); decrypted only by the session store.
    - create_date / update_date / expiry_date: UTC wall clocks; expiry_date
      slides forward on every authenticated request.
    - ttl: expiry_date as seconds since the epoch; the sweeper deletes rows
      whose ttl is in the past.
    """
    __tablename__ = "sessions"

    session_id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)

    data = Column(Text, nullable=False)

    create_date = Column(DateTime(timezone=True), nullable=False)
    update_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    ttl = Column(Integer, nullable=False, index=True)
