"""Read-time views over a window of report records.

Everything here is a pure function of its input list: no caching, no I/O.
Records only need the attributes of kas.models.report.Report (id, class_id,
is_addition, score_delta, violation_kind, submitted_at).
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from kas.utils.dates import as_utc

MERIT = "表扬"
VIOLATION = "违纪"
VIOLATION_TYPES = {
    "discipline": "纪律违纪",
    "hygiene": "卫生违纪",
}

TIER_HIGH = "high"
TIER_MID = "mid"
TIER_LOW = "low"

LEVEL_LABELS = {
    (True, TIER_HIGH): "表彰",
    (True, TIER_MID): "表扬",
    (True, TIER_LOW): "小表扬",
    (False, TIER_HIGH): "重大违纪",
    (False, TIER_MID): "违纪",
    (False, TIER_LOW): "小违纪",
}


class Thresholds(NamedTuple):
    high: int = 5
    mid: int = 3


DEFAULT_THRESHOLDS = Thresholds()


class Classification(NamedTuple):
    type: str
    level: str
    tier: str


@dataclass
class ClassAggregate:
    class_id: int
    total_score: int = 0
    report_count: int = 0
    positive_count: int = 0
    negative_count: int = 0


def tier_for(score_delta: int, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> str:
    # high is checked first, so a score at both thresholds is high
    if score_delta >= thresholds.high:
        return TIER_HIGH
    if score_delta >= thresholds.mid:
        return TIER_MID
    return TIER_LOW


def classify(record, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Classification:
    if record.is_addition:
        report_type = MERIT
    else:
        report_type = VIOLATION_TYPES.get(record.violation_kind, VIOLATION)
    tier = tier_for(record.score_delta, thresholds)
    return Classification(report_type, LEVEL_LABELS[(bool(record.is_addition), tier)], tier)


def signed_score(record) -> int:
    return record.score_delta if record.is_addition else -record.score_delta


def summarize(records: Sequence) -> Dict[str, int]:
    positive = sum(1 for r in records if r.is_addition)
    return {
        "total": len(records),
        "positive": positive,
        "negative": len(records) - positive,
        "activeClasses": len({r.class_id for r in records}),
    }


def rank(records: Iterable, limit: Optional[int] = None) -> List[ClassAggregate]:
    """Per-class signed totals, best first.

    dicts keep first-seen order and sorted() is stable, so classes with equal
    totals stay in the order they first appear in `records`.
    """
    by_class: Dict[int, ClassAggregate] = {}
    for record in records:
        stat = by_class.get(record.class_id)
        if stat is None:
            stat = by_class[record.class_id] = ClassAggregate(class_id=record.class_id)
        stat.report_count += 1
        stat.total_score += signed_score(record)
        if record.is_addition:
            stat.positive_count += 1
        else:
            stat.negative_count += 1

    ranking = sorted(by_class.values(), key=lambda s: s.total_score, reverse=True)
    if limit is not None:
        ranking = ranking[:limit]
    return ranking


def type_histogram(records: Iterable, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Dict[str, int]:
    histogram: Dict[str, int] = {}
    for record in records:
        label = classify(record, thresholds).level
        histogram[label] = histogram.get(label, 0) + 1
    return histogram


def recent(records: Iterable, n: int) -> list:
    """The n most recently submitted records, newest first (later id wins a tie)."""
    if n <= 0:
        return []
    ordered = sorted(records, key=lambda r: (as_utc(r.submitted_at), r.id or 0), reverse=True)
    return ordered[:n]
