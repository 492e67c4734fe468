import datetime as dt

from pydantic import BaseModel


class RuleEvaluationResponse(BaseModel):
    alerts_fired: int


class FinalizationRequest(BaseModel):
    date: dt.date | None = None  # defaults to yesterday (UTC)


class FinalizationResponse(BaseModel):
    date: dt.date
    rows_finalized: int


class RevenueSyncResponse(BaseModel):
    date: dt.date
    entries_upserted: int
