from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, date
from typing import Dict, List, Literal, Optional

from kas.utils.dates import as_utc

CLASS_MIN, CLASS_MAX = 1, 100
SCORE_MIN, SCORE_MAX = 1, 20


class ReportCreate(BaseModel):
    class_id: int = Field(..., alias="class", ge=CLASS_MIN, le=CLASS_MAX)
    is_addition: bool = Field(..., alias="isadd")
    score_delta: int = Field(..., alias="changescore", ge=SCORE_MIN, le=SCORE_MAX)
    note: str = Field(..., min_length=1)
    submitter: str = Field(..., min_length=1)
    violation_kind: Optional[Literal["discipline", "hygiene"]] = Field(None, alias="reducetype")

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    @field_validator("violation_kind", mode="before")
    @classmethod
    def blank_kind_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def merits_have_no_violation_kind(self):
        if self.is_addition:
            self.violation_kind = None
        return self


class ReportResponse(BaseModel):
    id: int
    class_id: int = Field(serialization_alias="class")
    is_addition: bool = Field(serialization_alias="isadd")
    score_delta: int = Field(serialization_alias="changescore")
    note: str
    submitter: str
    violation_kind: Optional[str] = Field(None, serialization_alias="reducetype")
    submitted_at: datetime = Field(serialization_alias="submittime")
    date_partition: date

    model_config = {"from_attributes": True}

    @field_validator("submitted_at")
    @classmethod
    def submitted_at_is_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ReportBroadcast(ReportResponse):
    headteacher: Optional[str] = None


class ReportListResponse(BaseModel):
    success: bool = True
    data: List[ReportResponse]
    count: int


class SubmitResponse(BaseModel):
    success: bool = True
    message: str = "数据提交成功"
    id: int
    submittime: datetime
    database: str  # month partition, YYYY-MM
    date_partition: date
    headteacher: Optional[str] = None
    delivered: int


class Summary(BaseModel):
    total: int
    positive: int
    negative: int
    activeClasses: int


class ClassRankingItem(BaseModel):
    class_id: int = Field(serialization_alias="class")
    headteacher: Optional[str] = None
    total_score: int = Field(serialization_alias="totalScore")
    report_count: int = Field(serialization_alias="reportCount")
    positive_count: int = Field(serialization_alias="positiveCount")
    negative_count: int = Field(serialization_alias="negativeCount")

    model_config = {"from_attributes": True}


class RecentReportItem(BaseModel):
    id: int
    class_id: int = Field(serialization_alias="class")
    type: str
    level: str
    score: int
    note: str
    submitter: str
    time: datetime

    @field_validator("time")
    @classmethod
    def time_is_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TodayStats(BaseModel):
    date: date
    summary: Summary
    typeStats: Dict[str, int]
    classRanking: List[ClassRankingItem]
    recentReports: List[RecentReportItem]
    timestamp: datetime


class TodayStatsResponse(BaseModel):
    success: bool = True
    data: TodayStats


class ClassItem(BaseModel):
    class_id: int = Field(serialization_alias="class")
    headteacher: str


class ClassListResponse(BaseModel):
    success: bool = True
    data: List[ClassItem]
    count: int
