"""001 – Initial schema: attendance, schedules, requests, approvals, seed data.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000+01:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

MULTI_LEVEL_STATUSES = (
    "'pending', 'approved_n1', 'approved_n2', 'approved_n3', 'approved_n4', "
    "'approved_n5', 'approved', 'rejected', 'cancelled'"
)
SINGLE_LEVEL_STATUSES = "'pending', 'approved', 'rejected', 'cancelled'"
RECORD_STATUSES = "'active', 'inactive'"
DAY_STATUSES = (
    "'present', 'late', 'early_leave', 'partial', 'absent', 'weekend', 'holiday', "
    "'leave', 'sick', 'mission', 'training', 'recovery', 'recovery_off', "
    "'overtime', 'pending'"
)


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            profile_id    UUID UNIQUE,
            employee_code VARCHAR(30) UNIQUE,
            first_name    VARCHAR(100) NOT NULL,
            last_name     VARCHAR(100) NOT NULL,
            department_id UUID,
            segment_id    UUID,
            centre_id     UUID,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. employee_managers (approval chain) ────────────────────────────
    op.execute("""
        CREATE TABLE employee_managers (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            manager_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            rank        INTEGER NOT NULL CHECK (rank >= 0),
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_employee_manager_rank UNIQUE (employee_id, rank)
        )
    """)

    # ── 3. work_schedules ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE work_schedules (
            id                            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                          VARCHAR(100) NOT NULL UNIQUE,
            monday_start    TIME, monday_end    TIME,
            tuesday_start   TIME, tuesday_end   TIME,
            wednesday_start TIME, wednesday_end TIME,
            thursday_start  TIME, thursday_end  TIME,
            friday_start    TIME, friday_end    TIME,
            saturday_start  TIME, saturday_end  TIME,
            sunday_start    TIME, sunday_end    TIME,
            start_time                    TIME,
            end_time                      TIME,
            break_duration_minutes        INTEGER DEFAULT 0,
            tolerance_late_minutes        INTEGER DEFAULT 15,
            tolerance_early_leave_minutes INTEGER DEFAULT 15,
            working_days                  JSONB DEFAULT '[1, 2, 3, 4, 5]',
            is_default                    BOOLEAN DEFAULT FALSE,
            is_active                     BOOLEAN DEFAULT TRUE,
            created_at                    TIMESTAMPTZ DEFAULT NOW(),
            updated_at                    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 4. employee_schedules ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employee_schedules (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            schedule_id UUID NOT NULL REFERENCES work_schedules(id),
            start_date  DATE NOT NULL,
            end_date    DATE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_employee_schedules_lookup
            ON employee_schedules(employee_id, start_date)
    """)

    # ── 5. public_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE public_holidays (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            holiday_date DATE NOT NULL UNIQUE,
            name         VARCHAR(150) NOT NULL,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 6. recovery_periods / recovery_declarations ──────────────────────
    op.execute(f"""
        CREATE TABLE recovery_periods (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name           VARCHAR(150) NOT NULL,
            applies_to_all BOOLEAN DEFAULT TRUE,
            status         VARCHAR(20) DEFAULT 'active'
                           CONSTRAINT ck_recovery_period_status CHECK (status IN ({RECORD_STATUSES})),
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(f"""
        CREATE TABLE recovery_declarations (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            period_id     UUID NOT NULL REFERENCES recovery_periods(id) ON DELETE CASCADE,
            recovery_date DATE NOT NULL,
            is_day_off    BOOLEAN DEFAULT FALSE,
            department_id UUID,
            segment_id    UUID,
            centre_id     UUID,
            status        VARCHAR(20) DEFAULT 'active'
                          CONSTRAINT ck_recovery_declaration_status CHECK (status IN ({RECORD_STATUSES})),
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_recovery_declarations_date ON recovery_declarations(recovery_date)")

    # ── 7. leave_types / leave_balances / leave_requests ─────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code       VARCHAR(30) NOT NULL UNIQUE,
            name       VARCHAR(100) NOT NULL,
            category   VARCHAR(20) NOT NULL DEFAULT 'paid'
                       CHECK (category IN ('paid', 'unpaid', 'sick', 'other')),
            is_active  BOOLEAN DEFAULT TRUE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE leave_balances (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id UUID NOT NULL REFERENCES leave_types(id),
            year          INTEGER NOT NULL,
            total_days    NUMERIC(5,1) DEFAULT 0,
            used_days     NUMERIC(5,1) DEFAULT 0,
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance_emp_type_year UNIQUE (employee_id, leave_type_id, year)
        )
    """)
    op.execute(f"""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id       UUID NOT NULL REFERENCES leave_types(id),
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            days_requested      NUMERIC(5,1) NOT NULL,
            reason              TEXT,
            status              VARCHAR(20) NOT NULL DEFAULT 'pending',
            balance_deducted    BOOLEAN NOT NULL DEFAULT FALSE,
            cancelled_at        TIMESTAMPTZ,
            cancelled_by        UUID REFERENCES employees(id),
            cancellation_reason TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_status CHECK (status IN ({MULTI_LEVEL_STATUSES})),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee_dates
            ON leave_requests(employee_id, start_date, end_date)
    """)

    # ── 8. overtime_requests / overtime_periods ──────────────────────────
    op.execute(f"""
        CREATE TABLE overtime_requests (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            request_date    DATE NOT NULL,
            estimated_hours NUMERIC(4,2) NOT NULL,
            reason          TEXT,
            status          VARCHAR(20) NOT NULL DEFAULT 'pending',
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_overtime_request_status CHECK (status IN ({SINGLE_LEVEL_STATUSES})),
            CONSTRAINT ck_overtime_request_hours CHECK (estimated_hours > 0)
        )
    """)
    op.execute("""
        CREATE INDEX ix_overtime_requests_employee_date
            ON overtime_requests(employee_id, request_date)
    """)
    op.execute(f"""
        CREATE TABLE overtime_periods (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL,
            period_date DATE NOT NULL,
            start_time  TIME NOT NULL,
            end_time    TIME NOT NULL,
            rate_type   VARCHAR(20) NOT NULL DEFAULT 'normal',
            status      VARCHAR(20) DEFAULT 'active',
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_overtime_period_rate_type
                CHECK (rate_type IN ('normal', 'extended', 'special')),
            CONSTRAINT ck_overtime_period_status CHECK (status IN ({RECORD_STATUSES}))
        )
    """)
    op.execute("CREATE INDEX ix_overtime_periods_date ON overtime_periods(period_date)")
    op.execute("""
        CREATE TABLE overtime_period_employees (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            period_id   UUID NOT NULL REFERENCES overtime_periods(id) ON DELETE CASCADE,
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            CONSTRAINT uq_overtime_period_employee UNIQUE (period_id, employee_id)
        )
    """)

    # ── 9. attendance_daily ───────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE attendance_daily (
            id                      UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id             UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            work_date               DATE NOT NULL,
            clock_in_at             TIMESTAMPTZ,
            clock_out_at            TIMESTAMPTZ,
            day_status              VARCHAR(20) NOT NULL DEFAULT 'pending',
            scheduled_start         TIME,
            scheduled_end           TIME,
            scheduled_break_minutes INTEGER DEFAULT 0,
            gross_worked_minutes    INTEGER,
            net_worked_minutes      INTEGER,
            late_minutes            INTEGER DEFAULT 0,
            early_leave_minutes     INTEGER DEFAULT 0,
            overtime_minutes        INTEGER DEFAULT 0,
            overtime_rate_type      VARCHAR(20),
            hours_to_recover        INTEGER,
            special_day             JSONB,
            is_anomaly              BOOLEAN DEFAULT FALSE,
            source                  VARCHAR(20) NOT NULL DEFAULT 'clock',
            notes                   TEXT,
            created_at              TIMESTAMPTZ DEFAULT NOW(),
            updated_at              TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_attendance_daily_emp_date UNIQUE (employee_id, work_date),
            CONSTRAINT ck_attendance_daily_status CHECK (day_status IN ({DAY_STATUSES})),
            CONSTRAINT ck_attendance_daily_source
                CHECK (source IN ('clock', 'correction', 'recalculation'))
        )
    """)
    op.execute("CREATE INDEX ix_attendance_daily_work_date ON attendance_daily(work_date)")

    # ── 10. attendance_correction_requests ────────────────────────────────
    op.execute(f"""
        CREATE TABLE attendance_correction_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            request_date        DATE NOT NULL,
            requested_check_in  VARCHAR(15),
            requested_check_out VARCHAR(15),
            original_check_in   VARCHAR(15),
            original_check_out  VARCHAR(15),
            reason              TEXT NOT NULL,
            status              VARCHAR(20) NOT NULL DEFAULT 'pending',
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_correction_request_status CHECK (status IN ({MULTI_LEVEL_STATUSES}))
        )
    """)
    op.execute("""
        CREATE INDEX ix_correction_requests_employee_date
            ON attendance_correction_requests(employee_id, request_date)
    """)

    # ── 11. approval_steps ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE approval_steps (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            request_type VARCHAR(20) NOT NULL,
            request_id   UUID NOT NULL,
            rank         INTEGER,
            approver_id  UUID NOT NULL REFERENCES employees(id),
            decision     VARCHAR(20) NOT NULL,
            comment      TEXT,
            decided_at   TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_approval_step_rank_decision
                UNIQUE (request_type, request_id, rank, decision),
            CONSTRAINT ck_approval_step_request_type
                CHECK (request_type IN ('leave', 'overtime', 'correction')),
            CONSTRAINT ck_approval_step_decision
                CHECK (decision IN ('approved', 'rejected', 'cancelled'))
        )
    """)
    op.execute("""
        CREATE INDEX ix_approval_steps_request
            ON approval_steps(request_type, request_id)
    """)

    # ── 12. audit_trail ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(100) NOT NULL,
            entity_type VARCHAR(100) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_entity
            ON audit_trail(entity_type, entity_id)
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_action   ON audit_trail(action)")

    # ── 13. app_settings ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE app_settings (
            key         VARCHAR(100) PRIMARY KEY,
            value       JSONB NOT NULL,
            description TEXT,
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_by  UUID REFERENCES employees(id)
        )
    """)

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    # Default schedule (Mon–Fri 08:30–17:30, one-hour break)
    op.execute("""
        INSERT INTO work_schedules
            (name, start_time, end_time, break_duration_minutes, working_days, is_default)
        VALUES
            ('Standard', '08:30', '17:30', 60, '[1, 2, 3, 4, 5]', TRUE)
    """)

    # Leave types
    op.execute("""
        INSERT INTO leave_types (code, name, category) VALUES
            ('CP',        'Congé payé',           'paid'),
            ('SANS_SOLDE','Congé sans solde',     'unpaid'),
            ('MALADIE',   'Congé maladie',        'sick'),
            ('MISSION',   'Mission',              'other'),
            ('FORMATION', 'Formation',            'other')
    """)

    # App settings
    op.execute("""
        INSERT INTO app_settings (key, value, description) VALUES
        ('system_clock', '{"enabled": false}', 'Virtual system clock')
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "app_settings",
        "audit_trail",
        "approval_steps",
        "attendance_correction_requests",
        "attendance_daily",
        "overtime_period_employees",
        "overtime_periods",
        "overtime_requests",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "recovery_declarations",
        "recovery_periods",
        "public_holidays",
        "employee_schedules",
        "work_schedules",
        "employee_managers",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
