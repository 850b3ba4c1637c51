from sqlalchemy import Column, String, DateTime
from models.base import Base


class HandshakeTicket(Base):
    """Short-lived request token secret awaiting user verification."""
    __tablename__ = "oauth_request_tokens"

    token = Column(String(255), primary_key=True)
    secret = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
