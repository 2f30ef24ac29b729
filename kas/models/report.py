from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Index, Integer, String, Text

from kas.database import Base


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column("class", Integer, nullable=False)
    is_addition = Column("isadd", Boolean, nullable=False)
    score_delta = Column("changescore", Integer, nullable=False)
    note = Column(Text, nullable=False)
    submitter = Column(Text, nullable=False)
    violation_kind = Column("reducetype", String(20), nullable=True)  # NULL for merits
    submitted_at = Column("submittime", DateTime(timezone=True), nullable=False)
    # Derived from submitted_at by kas.utils.dates.derive_date_partition, never from input
    date_partition = Column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("changescore BETWEEN 1 AND 20", name="ck_reports_changescore_range"),
        CheckConstraint("reducetype IS NULL OR reducetype IN ('discipline', 'hygiene')", name="ck_reports_reducetype"),
        Index("reports_date_class_idx", "date_partition", "class"),
        Index("reports_submittime_idx", "submittime"),
        Index("reports_class_idx", "class"),
        Index("reports_date_partition_idx", "date_partition"),
    )
