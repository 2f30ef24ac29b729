from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from kas.config import Settings
from kas.core.deps import get_app_settings, get_broadcaster, get_directory, get_store, get_thresholds
from kas.core.errors import ValidationError
from kas.realtime.broadcaster import Broadcaster
from kas.schemas.report import (
    ClassRankingItem,
    RecentReportItem,
    ReportCreate,
    ReportListResponse,
    ReportResponse,
    SubmitResponse,
    Summary,
    TodayStats,
    TodayStatsResponse,
)
from kas.services import aggregation
from kas.services.aggregation import Thresholds
from kas.services.headteachers import HeadteacherDirectory
from kas.services.report_store import ReportStore
from kas.services.submission import submit_report
from kas.utils.dates import parse_date, parse_year_month, today_partition

RANKING_LIMIT = 10
RECENT_LIMIT = 5

router = APIRouter(prefix="/api", tags=["reports"])


def _listing(reports) -> ReportListResponse:
    return ReportListResponse(
        data=[ReportResponse.model_validate(r) for r in reports],
        count=len(reports),
    )


def _check_class(class_num: int) -> int:
    if class_num < 1:
        raise ValidationError("班级号格式错误")
    return class_num


@router.post("/inputdata", response_model=SubmitResponse)
async def create_report(
    report_in: ReportCreate,
    store: ReportStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    directory: HeadteacherDirectory = Depends(get_directory),
    settings: Settings = Depends(get_app_settings),
):
    """Submit a report and push it to realtime subscribers."""
    return await submit_report(report_in, store, broadcaster, directory, tz=settings.REPORT_TIMEZONE)


@router.get("/reports/today/stats", response_model=TodayStatsResponse)
async def get_today_stats(
    store: ReportStore = Depends(get_store),
    directory: HeadteacherDirectory = Depends(get_directory),
    thresholds: Thresholds = Depends(get_thresholds),
    settings: Settings = Depends(get_app_settings),
):
    """Overview page: today's summary, level counts, class ranking and latest reports."""
    today = today_partition(settings.REPORT_TIMEZONE)
    reports = await store.query_by_date(today)

    ranking = [
        ClassRankingItem(
            class_id=stat.class_id,
            headteacher=directory.get_headteacher(stat.class_id),
            total_score=stat.total_score,
            report_count=stat.report_count,
            positive_count=stat.positive_count,
            negative_count=stat.negative_count,
        )
        for stat in aggregation.rank(reports, limit=RANKING_LIMIT)
    ]

    recent_items = []
    for report in aggregation.recent(reports, RECENT_LIMIT):
        label = aggregation.classify(report, thresholds)
        recent_items.append(
            RecentReportItem(
                id=report.id,
                class_id=report.class_id,
                type=label.type,
                level=label.level,
                score=report.score_delta,
                note=report.note,
                submitter=report.submitter,
                time=report.submitted_at,
            )
        )

    return TodayStatsResponse(
        data=TodayStats(
            date=today,
            summary=Summary(**aggregation.summarize(reports)),
            typeStats=aggregation.type_histogram(reports, thresholds),
            classRanking=ranking,
            recentReports=recent_items,
            timestamp=datetime.now(timezone.utc),
        )
    )


@router.get("/reports/date/{date}", response_model=ReportListResponse)
async def get_reports_by_date(date: str, store: ReportStore = Depends(get_store)):
    day = parse_date(date)
    return _listing(await store.query_by_date(day))


@router.get("/reports/date/{date}/class/{class_num}", response_model=ReportListResponse)
async def get_reports_by_date_and_class(date: str, class_num: int, store: ReportStore = Depends(get_store)):
    day = parse_date(date)
    return _listing(await store.query_by_date_and_class(day, _check_class(class_num)))


@router.get("/reports/class/{class_num}/range/{start_date}/{end_date}", response_model=ReportListResponse)
async def get_reports_by_class_and_range(
    class_num: int,
    start_date: str,
    end_date: str,
    store: ReportStore = Depends(get_store),
):
    start = parse_date(start_date, "startDate")
    end = parse_date(end_date, "endDate")
    if start > end:
        raise ValidationError("开始日期不能大于结束日期")
    return _listing(await store.query_by_class_and_range(_check_class(class_num), start, end))


# Keep last: /reports/{year_month} would shadow the routes above
@router.get("/reports/{year_month}", response_model=ReportListResponse)
async def get_reports_by_month(year_month: str, store: ReportStore = Depends(get_store)):
    year, month = parse_year_month(year_month)
    return _listing(await store.query_by_month(year, month))
