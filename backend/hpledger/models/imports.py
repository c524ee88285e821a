from __future__ import annotations

from ..extensions import db
from hpledger.time_utils import to_utc_z


class ImportBatch(db.Model):
    """
    One uploaded spreadsheet.

    LIFECYCLE:
    1. CREATED: Batch row written, rows being processed
    2. COMPLETED: Every row either applied or recorded as an error
    3. FAILED: The file itself could not be read (no rows applied)

    Rows are applied one at a time; a failing row never aborts the batch.
    """
    __tablename__ = "import_batches"
    __table_args__ = (
        db.Index("ix_import_batches_business_status", "business_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    # PURCHASES, PAYMENTS, PRODUCTS
    import_type = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="CREATED", index=True)
    source_file_name = db.Column(db.String(255), nullable=True)

    total_rows = db.Column(db.Integer, nullable=False, default=0)
    created_rows = db.Column(db.Integer, nullable=False, default=0)
    updated_rows = db.Column(db.Integer, nullable=False, default=0)
    error_rows = db.Column(db.Integer, nullable=False, default=0)
    errors = db.Column(db.JSON, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "import_type": self.import_type,
            "status": self.status,
            "source_file_name": self.source_file_name,
            "total_rows": self.total_rows,
            "created_rows": self.created_rows,
            "updated_rows": self.updated_rows,
            "error_rows": self.error_rows,
            "errors": self.errors or [],
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
        }
