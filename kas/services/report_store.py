import logging
from datetime import date
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kas.core.errors import StoreError
from kas.models.report import Report
from kas.utils.dates import month_bounds

logger = logging.getLogger(__name__)


class ReportStore:
    """Queries over the reports table for one request-scoped session.

    Every read is ordered newest first. Driver/pool errors surface as
    StoreError; the session itself is closed by whoever opened it.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, report: Report) -> Report:
        try:
            self.db.add(report)
            await self.db.commit()
            await self.db.refresh(report)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise self._failure("insert report", e) from e
        return report

    async def _fetch(self, action: str, *criteria) -> List[Report]:
        query = (
            select(Report)
            .where(*criteria)
            .order_by(Report.submitted_at.desc(), Report.id.desc())
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise self._failure(action, e) from e
        return list(result.scalars().all())

    async def query_by_date(self, day: date) -> List[Report]:
        return await self._fetch("query reports by date", Report.date_partition == day)

    async def query_by_date_and_class(self, day: date, class_id: int) -> List[Report]:
        return await self._fetch(
            "query reports by date and class",
            Report.date_partition == day,
            Report.class_id == class_id,
        )

    async def query_by_month(self, year: int, month: int) -> List[Report]:
        start, end = month_bounds(year, month)
        return await self._fetch(
            "query reports by month",
            Report.date_partition >= start,
            Report.date_partition < end,
        )

    async def query_by_class_and_range(self, class_id: int, start: date, end: date) -> List[Report]:
        return await self._fetch(
            "query reports by class and range",
            Report.class_id == class_id,
            Report.date_partition.between(start, end),
        )

    @staticmethod
    def _failure(action: str, error: SQLAlchemyError) -> StoreError:
        logger.error("Failed to %s: %s", action, error)
        return StoreError(cause=str(error))
