"""Forecast graph models - forecasts with their nodes and edges.

These tables are owned by the editor's CRUD layer. The calculation
engine only reads them, through `to_engine()`.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, JSON, String, Index
from sqlalchemy.orm import relationship

from src.db.postgres import Base
from src.engine import types as engine_types


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Forecast(Base):
    """A named, dated collection of nodes and edges owned by an organization."""

    __tablename__ = "forecasts"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    organization_id = Column(String(36), nullable=False, index=True)

    # Horizon (any day of month; normalized by the engine)
    forecast_start_date = Column(Date, nullable=False)
    forecast_end_date = Column(Date, nullable=False)

    # Audit
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    nodes = relationship("ForecastNode", back_populates="forecast", cascade="all, delete-orphan")
    edges = relationship("ForecastEdge", back_populates="forecast", cascade="all, delete-orphan")
    calculation_results = relationship(
        "ForecastCalculationRecord", back_populates="forecast", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Forecast(name='{self.name}', {self.forecast_start_date} to {self.forecast_end_date})>"


class ForecastNode(Base):
    """Graph node. `attributes` holds the kind-specific payload as JSON."""

    __tablename__ = "forecast_nodes"

    id = Column(String(36), primary_key=True, default=_new_id)
    forecast_id = Column(String(36), ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # DATA, CONSTANT, OPERATOR, METRIC, SEED
    attributes = Column(JSON, nullable=False, default=dict)
    position = Column(JSON, nullable=True)  # Editor only

    forecast = relationship("Forecast", back_populates="nodes")

    def __repr__(self):
        return f"<ForecastNode(id={self.id}, kind={self.kind})>"

    def to_engine(self) -> engine_types.ForecastNode:
        return engine_types.ForecastNode(
            id=self.id,
            kind=self.kind,
            attributes=dict(self.attributes or {}),
            forecast_id=self.forecast_id,
            position=self.position,
        )


class ForecastEdge(Base):
    """Graph edge: the source node feeds the target node."""

    __tablename__ = "forecast_edges"

    id = Column(String(36), primary_key=True, default=_new_id)
    forecast_id = Column(String(36), ForeignKey("forecasts.id", ondelete="CASCADE"), nullable=False, index=True)
    source_node_id = Column(String(36), nullable=False)
    target_node_id = Column(String(36), nullable=False)
    input_order = Column(Integer, nullable=True)

    forecast = relationship("Forecast", back_populates="edges")

    __table_args__ = (
        Index('ix_forecast_edge_target', 'forecast_id', 'target_node_id'),
    )

    def __repr__(self):
        return f"<ForecastEdge({self.source_node_id} -> {self.target_node_id})>"

    def to_engine(self) -> engine_types.ForecastEdge:
        return engine_types.ForecastEdge(
            id=self.id,
            source_node_id=self.source_node_id,
            target_node_id=self.target_node_id,
            input_order=self.input_order,
            forecast_id=self.forecast_id,
        )
