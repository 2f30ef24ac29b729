import logging
from datetime import datetime, timezone
from typing import Optional

from kas.models.report import Report
from kas.realtime.broadcaster import Broadcaster
from kas.schemas.realtime import DEFAULT_CHANNEL
from kas.schemas.report import ReportBroadcast, ReportCreate, SubmitResponse
from kas.services.headteachers import HeadteacherDirectory
from kas.services.report_store import ReportStore
from kas.utils.dates import derive_date_partition, month_partition

logger = logging.getLogger(__name__)


async def submit_report(
    report_in: ReportCreate,
    store: ReportStore,
    broadcaster: Broadcaster,
    directory: HeadteacherDirectory,
    tz: str = "UTC",
    now: Optional[datetime] = None,
) -> SubmitResponse:
    """
    Store a validated report, then push it to realtime subscribers.

    The insert and the broadcast are not one transaction: once the insert has
    committed the submission succeeds, whatever happens to the broadcast.
    """
    submitted_at = now or datetime.now(timezone.utc)
    partition = derive_date_partition(submitted_at, tz)

    report = await store.insert(
        Report(
            class_id=report_in.class_id,
            is_addition=report_in.is_addition,
            score_delta=report_in.score_delta,
            note=report_in.note,
            submitter=report_in.submitter,
            violation_kind=report_in.violation_kind,
            submitted_at=submitted_at,
            date_partition=partition,
        )
    )
    logger.info("Report %s stored for class %s (partition %s)", report.id, report.class_id, partition)

    headteacher = directory.get_headteacher(report.class_id)
    payload = (
        ReportBroadcast.model_validate(report)
        .model_copy(update={"headteacher": headteacher, "submitted_at": submitted_at})
        .model_dump(mode="json", by_alias=True)
    )

    delivered = 0
    try:
        delivered = await broadcaster.publish(payload, DEFAULT_CHANNEL)
    except Exception:
        logger.exception("Broadcast of report %s failed", report.id)

    return SubmitResponse(
        id=report.id,
        submittime=submitted_at,
        database=month_partition(partition),
        date_partition=partition,
        headteacher=headteacher,
        delivered=delivered,
    )
