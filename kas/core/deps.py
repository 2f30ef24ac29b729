from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from kas.config import Settings
from kas.database import get_db
from kas.realtime.broadcaster import Broadcaster
from kas.services.aggregation import Thresholds
from kas.services.headteachers import HeadteacherDirectory
from kas.services.report_store import ReportStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


def get_directory(request: Request) -> HeadteacherDirectory:
    return request.app.state.directory


def get_thresholds(settings: Settings = Depends(get_app_settings)) -> Thresholds:
    return Thresholds(high=settings.LEVEL_HIGH_THRESHOLD, mid=settings.LEVEL_MID_THRESHOLD)


async def get_store(db: AsyncSession = Depends(get_db)) -> ReportStore:
    return ReportStore(db)
