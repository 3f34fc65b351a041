"""Bed management schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.String(length=36), nullable=False)


def _tenant():
    return sa.Column('tenant_id', sa.String(length=50), nullable=False)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    # Units
    op.create_table(
        'units',
        _id(),
        _tenant(),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('unit_type', sa.String(length=50), nullable=True),
        sa.Column('specialty', sa.String(length=100), nullable=True),
        sa.Column('floor', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_units_tenant_id', 'units', ['tenant_id'])

    # Patients (current_bed_id FK added once beds exists)
    op.create_table(
        'patients',
        _id(),
        _tenant(),
        sa.Column('medical_record_number', sa.String(length=50), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('medical_history', sa.Text(), nullable=True),
        sa.Column('isolation_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('isolation_type', sa.String(length=32), nullable=True),
        sa.Column('isolation_start_date', sa.DateTime(), nullable=True),
        sa.Column('isolation_end_date', sa.DateTime(), nullable=True),
        sa.Column('current_bed_id', sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_patients_tenant_id', 'patients', ['tenant_id'])
    op.create_index('ix_patients_medical_record_number', 'patients', ['medical_record_number'])
    op.create_index('ix_patients_tenant_mrn', 'patients', ['tenant_id', 'medical_record_number'], unique=True)

    # Beds
    op.create_table(
        'beds',
        _id(),
        _tenant(),
        sa.Column('bed_number', sa.String(length=20), nullable=False),
        sa.Column('unit_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='available'),
        sa.Column('cleaning_status', sa.String(length=32), nullable=False, server_default='clean'),
        sa.Column('cleaning_priority', sa.String(length=32), nullable=False, server_default='normal'),
        sa.Column('terminal_clean_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('isolation_capable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('isolation_type', sa.String(length=32), nullable=True),
        sa.Column('has_telemetry', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_oxygen', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_bariatric', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('distance_to_nurses_station', sa.Integer(), nullable=True),
        sa.Column('current_patient_id', sa.String(length=36), nullable=True),
        sa.Column('occupied_at', sa.DateTime(), nullable=True),
        sa.Column('cleaning_started_at', sa.DateTime(), nullable=True),
        sa.Column('available_at', sa.DateTime(), nullable=True),
        sa.Column('last_cleaned_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id']),
        sa.ForeignKeyConstraint(['current_patient_id'], ['patients.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_beds_tenant_id', 'beds', ['tenant_id'])
    op.create_index('ix_beds_unit_id', 'beds', ['unit_id'])
    op.create_index('ix_beds_status', 'beds', ['status'])
    op.create_index('ix_beds_tenant_unit_number', 'beds', ['tenant_id', 'unit_id', 'bed_number'], unique=True)

    op.create_foreign_key('fk_patients_current_bed', 'patients', 'beds', ['current_bed_id'], ['id'])

    # Diagnoses and labs
    op.create_table(
        'patient_diagnoses',
        _id(),
        _tenant(),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('recorded_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_patient_diagnoses_tenant_id', 'patient_diagnoses', ['tenant_id'])
    op.create_index('ix_patient_diagnoses_patient_id', 'patient_diagnoses', ['patient_id'])

    op.create_table(
        'lab_orders',
        _id(),
        _tenant(),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('test_name', sa.String(length=255), nullable=False),
        sa.Column('ordered_by', sa.String(length=36), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('ordered_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lab_orders_tenant_id', 'lab_orders', ['tenant_id'])
    op.create_index('ix_lab_orders_patient_id', 'lab_orders', ['patient_id'])

    op.create_table(
        'lab_results',
        _id(),
        _tenant(),
        sa.Column('order_id', sa.String(length=36), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('organism', sa.String(length=100), nullable=True),
        sa.Column('result_status', sa.String(length=32), nullable=False),
        sa.Column('result', sa.Text(), nullable=True),
        sa.Column('resulted_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['lab_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_lab_results_tenant_id', 'lab_results', ['tenant_id'])
    op.create_index('ix_lab_results_order_id', 'lab_results', ['order_id'])
    op.create_index('ix_lab_results_patient_id', 'lab_results', ['patient_id'])

    # Assignments and turnovers
    op.create_table(
        'bed_assignments',
        _id(),
        _tenant(),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('bed_id', sa.String(length=36), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('assigned_by', sa.String(length=36), nullable=True),
        sa.Column('reasoning', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('isolation_type', sa.String(length=32), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('released_by', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id']),
        sa.ForeignKeyConstraint(['bed_id'], ['beds.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bed_assignments_tenant_id', 'bed_assignments', ['tenant_id'])
    op.create_index('ix_bed_assignments_patient_id', 'bed_assignments', ['patient_id'])
    op.create_index('ix_bed_assignments_bed_id', 'bed_assignments', ['bed_id'])
    # At most one active assignment per bed
    op.create_index(
        'uq_bed_assignments_active_bed',
        'bed_assignments',
        ['bed_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'")
    )
    # and at most one per patient
    op.create_index(
        'uq_bed_assignments_active_patient',
        'bed_assignments',
        ['patient_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'")
    )

    op.create_table(
        'bed_turnovers',
        _id(),
        _tenant(),
        sa.Column('bed_id', sa.String(length=36), nullable=False),
        sa.Column('unit_id', sa.String(length=36), nullable=False),
        sa.Column('cleaning_type', sa.String(length=32), nullable=False),
        sa.Column('cleaning_started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=False),
        sa.Column('turnover_minutes', sa.Integer(), nullable=False),
        sa.Column('target_minutes', sa.Integer(), nullable=False),
        sa.Column('exceeded_target', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['bed_id'], ['beds.id']),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bed_turnovers_tenant_id', 'bed_turnovers', ['tenant_id'])
    op.create_index('ix_bed_turnovers_bed_id', 'bed_turnovers', ['bed_id'])
    op.create_index('ix_bed_turnovers_unit_id', 'bed_turnovers', ['unit_id'])
    op.create_index('ix_bed_turnovers_completed_at', 'bed_turnovers', ['completed_at'])

    # Admissions and discharge planning
    op.create_table(
        'admissions',
        _id(),
        _tenant(),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('bed_id', sa.String(length=36), nullable=True),
        sa.Column('admission_date', sa.DateTime(), nullable=False),
        sa.Column('discharge_date', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('mobility_status', sa.String(length=32), nullable=True),
        sa.Column('pain_level', sa.Integer(), nullable=True),
        sa.Column('discharge_destination', sa.String(length=32), nullable=True),
        sa.Column('monitored_medications', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id']),
        sa.ForeignKeyConstraint(['bed_id'], ['beds.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_admissions_tenant_id', 'admissions', ['tenant_id'])
    op.create_index('ix_admissions_patient_id', 'admissions', ['patient_id'])
    op.create_index('ix_admissions_status', 'admissions', ['status'])

    op.create_table(
        'vital_signs',
        _id(),
        _tenant(),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.Column('temperature', sa.Float(), nullable=True),
        sa.Column('heart_rate', sa.Integer(), nullable=True),
        sa.Column('blood_pressure_systolic', sa.Integer(), nullable=True),
        sa.Column('blood_pressure_diastolic', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_vital_signs_tenant_id', 'vital_signs', ['tenant_id'])
    op.create_index('ix_vital_signs_patient_id', 'vital_signs', ['patient_id'])
    op.create_index('ix_vital_signs_recorded_at', 'vital_signs', ['recorded_at'])

    op.create_table(
        'discharge_planning_items',
        _id(),
        _tenant(),
        sa.Column('admission_id', sa.String(length=36), nullable=False),
        sa.Column('item_type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['admission_id'], ['admissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_discharge_planning_items_tenant_id', 'discharge_planning_items', ['tenant_id'])
    op.create_index('ix_discharge_planning_items_admission_id', 'discharge_planning_items', ['admission_id'])

    op.create_table(
        'equipment_orders',
        _id(),
        _tenant(),
        sa.Column('admission_id', sa.String(length=36), nullable=False),
        sa.Column('equipment_type', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='ordered'),
        sa.Column('ordered_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admission_id'], ['admissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_equipment_orders_tenant_id', 'equipment_orders', ['tenant_id'])
    op.create_index('ix_equipment_orders_admission_id', 'equipment_orders', ['admission_id'])

    op.create_table(
        'discharge_barriers',
        _id(),
        _tenant(),
        sa.Column('admission_id', sa.String(length=36), nullable=False),
        sa.Column('barrier_key', sa.String(length=64), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('severity', sa.String(length=32), nullable=False),
        sa.Column('estimated_delay_hours', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('identified_at', sa.DateTime(), nullable=False),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_by', sa.String(length=36), nullable=True),
        sa.Column('resolution_source', sa.String(length=32), nullable=True),
        sa.ForeignKeyConstraint(['admission_id'], ['admissions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admission_id', 'barrier_key', name='uq_discharge_barriers_admission_key')
    )
    op.create_index('ix_discharge_barriers_tenant_id', 'discharge_barriers', ['tenant_id'])
    op.create_index('ix_discharge_barriers_admission_id', 'discharge_barriers', ['admission_id'])

    op.create_table(
        'discharge_predictions',
        _id(),
        _tenant(),
        sa.Column('admission_id', sa.String(length=36), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('medical_readiness_score', sa.Float(), nullable=False),
        sa.Column('social_readiness_score', sa.Float(), nullable=False),
        sa.Column('overall_readiness_score', sa.Float(), nullable=False),
        sa.Column('confidence_level', sa.String(length=32), nullable=False),
        sa.Column('predicted_discharge_date', sa.DateTime(), nullable=False),
        sa.Column('recommended_interventions', sa.JSON(), nullable=True),
        sa.Column('computed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['admission_id'], ['admissions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admission_id')
    )
    op.create_index('ix_discharge_predictions_tenant_id', 'discharge_predictions', ['tenant_id'])
    op.create_index('ix_discharge_predictions_patient_id', 'discharge_predictions', ['patient_id'])
    op.create_index('ix_discharge_predictions_overall_readiness_score', 'discharge_predictions', ['overall_readiness_score'])

    # Feature flags and audit
    op.create_table(
        'feature_flags',
        _id(),
        _tenant(),
        sa.Column('feature_name', sa.String(length=64), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_by', sa.String(length=36), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'feature_name', name='uq_feature_flags_tenant_feature')
    )
    op.create_index('ix_feature_flags_tenant_id', 'feature_flags', ['tenant_id'])

    op.create_table(
        'bed_management_audit_logs',
        _id(),
        _tenant(),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('resource_type', sa.String(length=32), nullable=False),
        sa.Column('resource_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bed_management_audit_logs_tenant_id', 'bed_management_audit_logs', ['tenant_id'])
    op.create_index('ix_bed_management_audit_logs_action', 'bed_management_audit_logs', ['action'])
    op.create_index('ix_bed_management_audit_logs_resource_type', 'bed_management_audit_logs', ['resource_type'])
    op.create_index('ix_bed_management_audit_logs_resource_id', 'bed_management_audit_logs', ['resource_id'])
    op.create_index('ix_bed_management_audit_logs_user_id', 'bed_management_audit_logs', ['user_id'])
    op.create_index('ix_bed_management_audit_logs_created_at', 'bed_management_audit_logs', ['created_at'])


def downgrade() -> None:
    op.drop_table('bed_management_audit_logs')
    op.drop_table('feature_flags')
    op.drop_table('discharge_predictions')
    op.drop_table('discharge_barriers')
    op.drop_table('equipment_orders')
    op.drop_table('discharge_planning_items')
    op.drop_table('vital_signs')
    op.drop_table('admissions')
    op.drop_table('bed_turnovers')
    op.drop_index('uq_bed_assignments_active_patient', table_name='bed_assignments')
    op.drop_index('uq_bed_assignments_active_bed', table_name='bed_assignments')
    op.drop_table('bed_assignments')
    op.drop_table('lab_results')
    op.drop_table('lab_orders')
    op.drop_table('patient_diagnoses')
    op.drop_constraint('fk_patients_current_bed', 'patients', type_='foreignkey')
    op.drop_table('beds')
    op.drop_table('patients')
    op.drop_table('units')
