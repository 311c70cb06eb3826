"""Stored calculation snapshots."""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Index
from sqlalchemy.orm import relationship

from src.db.postgres import Base


class ForecastCalculationRecord(Base):
    """JSON snapshot of one calculation run. Never updated after insert."""

    __tablename__ = "forecast_calculation_results"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    forecast_id = Column(String(36), ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False)
    calculated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    metrics = Column(JSON, nullable=False)
    all_nodes = Column(JSON, nullable=True)
    warnings = Column(JSON, nullable=True)

    forecast = relationship("Forecast", back_populates="calculation_results")

    __table_args__ = (
        Index('ix_calculation_forecast_time', 'forecast_id', 'calculated_at'),
    )

    def __repr__(self):
        return f"<ForecastCalculationRecord(forecast={self.forecast_id}, at={self.calculated_at})>"

    def to_dict(self):
        data = {
            "id": self.id,
            "forecast_id": self.forecast_id,
            "calculated_at": self.calculated_at.isoformat() if self.calculated_at else None,
            "metrics": self.metrics or [],
            "warnings": self.warnings or [],
        }
        if self.all_nodes is not None:
            data["all_nodes"] = self.all_nodes
        return data
