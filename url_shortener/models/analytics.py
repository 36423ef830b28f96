from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from url_shortener.database.connection import Base


class Analytics(Base):
    """
    One persisted click.

    Rows are written in batches by the analytics worker and never updated.
    There is no retention policy: the table grows with traffic.
    """
    __tablename__ = "analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    short_code = Column(String(16), ForeignKey("urls.short_code"), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
