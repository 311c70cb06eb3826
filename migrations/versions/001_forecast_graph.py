"""Forecast graph, variable and calculation result tables

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    variable_type_enum = sa.Enum('ACTUAL', 'BUDGET', 'INPUT', 'UNKNOWN', name='variable_type_enum')

    op.create_table(
        'forecasts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('forecast_start_date', sa.Date(), nullable=False),
        sa.Column('forecast_end_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_forecasts_organization_id', 'forecasts', ['organization_id'])

    op.create_table(
        'forecast_nodes',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('forecast_id', sa.String(36), sa.ForeignKey('forecasts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('attributes', sa.JSON(), nullable=False),
        sa.Column('position', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_forecast_nodes_forecast_id', 'forecast_nodes', ['forecast_id'])

    op.create_table(
        'forecast_edges',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('forecast_id', sa.String(36), sa.ForeignKey('forecasts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('source_node_id', sa.String(36), nullable=False),
        sa.Column('target_node_id', sa.String(36), nullable=False),
        sa.Column('input_order', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_forecast_edges_forecast_id', 'forecast_edges', ['forecast_id'])
    op.create_index('ix_forecast_edge_target', 'forecast_edges', ['forecast_id', 'target_node_id'])

    op.create_table(
        'variables',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('type', variable_type_enum, nullable=False, server_default='UNKNOWN'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_variables_organization_id', 'variables', ['organization_id'])

    op.create_table(
        'variable_values',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('variable_id', sa.String(36), sa.ForeignKey('variables.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('value', sa.Numeric(18, 6), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variable_id', 'date', name='uq_variable_value_month'),
    )
    op.create_index('ix_variable_values_variable_id', 'variable_values', ['variable_id'])

    op.create_table(
        'forecast_calculation_results',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('forecast_id', sa.String(36), sa.ForeignKey('forecasts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('calculated_at', sa.DateTime(), nullable=False),
        sa.Column('metrics', sa.JSON(), nullable=False),
        sa.Column('all_nodes', sa.JSON(), nullable=True),
        sa.Column('warnings', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_calculation_forecast_time', 'forecast_calculation_results', ['forecast_id', 'calculated_at'])


def downgrade():
    op.drop_index('ix_calculation_forecast_time', table_name='forecast_calculation_results')
    op.drop_table('forecast_calculation_results')
    op.drop_index('ix_variable_values_variable_id', table_name='variable_values')
    op.drop_table('variable_values')
    op.drop_index('ix_variables_organization_id', table_name='variables')
    op.drop_table('variables')
    op.drop_index('ix_forecast_edge_target', table_name='forecast_edges')
    op.drop_index('ix_forecast_edges_forecast_id', table_name='forecast_edges')
    op.drop_table('forecast_edges')
    op.drop_index('ix_forecast_nodes_forecast_id', table_name='forecast_nodes')
    op.drop_table('forecast_nodes')
    op.drop_index('ix_forecasts_organization_id', table_name='forecasts')
    op.drop_table('forecasts')
    sa.Enum(name='variable_type_enum').drop(op.get_bind(), checkfirst=True)
