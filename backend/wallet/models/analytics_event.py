from sqlalchemy import Integer, DateTime, String, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from wallet.db.base import Base


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(64), index=True)
    parameters: Mapped[dict] = mapped_column(JSON, default=dict)

    created_at: Mapped[DateTime] = mapped_column(DateTime, index=True)


Index("ix_analytics_events_name_created", AnalyticsEvent.name, AnalyticsEvent.created_at)
