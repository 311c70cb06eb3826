"""Variable models - externally managed monthly time series."""

import uuid
from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from src.db.postgres import Base
from src.engine import types as engine_types
from src.engine.types import VariableType


class Variable(Base):
    """Named time series (actuals, budget, user inputs) for an organization."""

    __tablename__ = "variables"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    type = Column(SQLEnum(VariableType, name="variable_type_enum"), nullable=False, default=VariableType.UNKNOWN)

    values = relationship(
        "VariableValue",
        back_populates="variable",
        cascade="all, delete-orphan",
        order_by="VariableValue.date",
    )

    def __repr__(self):
        return f"<Variable(name='{self.name}', type={self.type.value if self.type else None})>"

    def to_engine(self) -> engine_types.Variable:
        return engine_types.Variable(
            id=self.id,
            type=self.type or VariableType.UNKNOWN,
            name=self.name,
            time_series=[
                engine_types.TimeSeriesPoint(date=v.date, value=v.value)
                for v in self.values
            ],
        )


class VariableValue(Base):
    """One monthly point of a variable. Value may be NULL."""

    __tablename__ = "variable_values"

    id = Column(Integer, primary_key=True, index=True)
    variable_id = Column(String(36), ForeignKey("variables.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    value = Column(Numeric(18, 6), nullable=True)

    variable = relationship("Variable", back_populates="values")

    __table_args__ = (
        UniqueConstraint('variable_id', 'date', name='uq_variable_value_month'),
    )

    def __repr__(self):
        return f"<VariableValue({self.date}: {self.value})>"
