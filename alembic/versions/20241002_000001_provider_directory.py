from alembic import op
import sqlalchemy as sa


revision = "20241002_000001_provider_directory"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "hospitals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("type", sa.String(length=32), nullable=False, server_default="private"),
        sa.Column("address", sa.String(length=512)),
        sa.Column("city", sa.String(length=128), nullable=False),
        sa.Column("state", sa.String(length=128)),
        sa.Column("country", sa.String(length=64), nullable=False, server_default="India"),
        sa.Column("pincode", sa.String(length=10)),
        sa.Column("latitude", sa.Numeric(9, 6)),
        sa.Column("longitude", sa.Numeric(9, 6)),
        sa.Column("phone", sa.String(length=64)),
        sa.Column("email", sa.String(length=255)),
        sa.Column("website", sa.String(length=255)),
        sa.Column("rating", sa.Numeric(2, 1)),
        sa.Column("emergency_services", sa.Boolean()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("rating IS NULL OR (rating >= 0 AND rating <= 5)", name="ck_hospitals_rating_range"),
    )
    op.create_index("ix_hospitals_city", "hospitals", ["city"])
    op.create_index("ix_hospitals_state", "hospitals", ["state"])
    op.create_index("ix_hospitals_lat_lng", "hospitals", ["latitude", "longitude"])

    op.create_table(
        "hospital_specialties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("hospital_id", sa.Integer(), sa.ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.UniqueConstraint("hospital_id", "name", name="uq_hospital_specialties_name"),
    )
    op.create_index("ix_hospital_specialties_hospital_id", "hospital_specialties", ["hospital_id"])

    op.create_table(
        "doctors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("specialization", sa.String(length=128), nullable=False),
        sa.Column("designation", sa.String(length=128)),
        sa.Column("experience_years", sa.Integer()),
        sa.Column("rating", sa.Numeric(2, 1)),
        sa.Column("consultation_fee", sa.Numeric(10, 2)),
        sa.Column("city", sa.String(length=128)),
        sa.Column("state", sa.String(length=128)),
        sa.Column("latitude", sa.Numeric(9, 6)),
        sa.Column("longitude", sa.Numeric(9, 6)),
        sa.Column("hospital_id", sa.Integer(), sa.ForeignKey("hospitals.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("rating IS NULL OR (rating >= 0 AND rating <= 5)", name="ck_doctors_rating_range"),
    )
    op.create_index("ix_doctors_specialization", "doctors", ["specialization"])
    op.create_index("ix_doctors_hospital_id", "doctors", ["hospital_id"])
    op.create_index("ix_doctors_city", "doctors", ["city"])


def downgrade() -> None:
    op.drop_index("ix_doctors_city", table_name="doctors")
    op.drop_index("ix_doctors_hospital_id", table_name="doctors")
    op.drop_index("ix_doctors_specialization", table_name="doctors")
    op.drop_table("doctors")

    op.drop_index("ix_hospital_specialties_hospital_id", table_name="hospital_specialties")
    op.drop_table("hospital_specialties")

    op.drop_index("ix_hospitals_lat_lng", table_name="hospitals")
    op.drop_index("ix_hospitals_state", table_name="hospitals")
    op.drop_index("ix_hospitals_city", table_name="hospitals")
    op.drop_table("hospitals")
