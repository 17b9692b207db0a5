"""SOS signal schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from reliefwatch.models.sos_signal import SignalPriority, SignalStatus


class SignalNoteResponse(BaseModel):
    id: int
    author_id: str
    text: str
    timestamp: datetime

    model_config = {"from_attributes": True}


class SosSignalResponse(BaseModel):
    id: int
    user_id: str | None
    latitude: float | None
    longitude: float | None
    message: str
    priority: SignalPriority
    status: SignalStatus
    escalation_level: int
    assigned_responder: str | None
    cluster_id: str | None
    created_at: datetime
    updated_at: datetime
    auto_escalated_at: datetime | None
    response_time: datetime | None
    resolution_time: datetime | None
    notes: list[SignalNoteResponse] = []

    model_config = {"from_attributes": True}


class SignalMetrics(BaseModel):
    response_minutes: int | None = None
    resolution_minutes: int | None = None


class SosSignalDetailResponse(SosSignalResponse):
    metrics: SignalMetrics = SignalMetrics()


class AssignResponderRequest(BaseModel):
    responder_id: str = Field(..., min_length=1, max_length=64)
    actor_id: str = Field(..., min_length=1, max_length=64)
    notes: str | None = None


class StatusUpdateRequest(BaseModel):
    status: SignalStatus
    actor_id: str = Field(..., min_length=1, max_length=64)
    notes: str | None = None


class ManualEscalationRequest(BaseModel):
    escalation_level: int = Field(..., ge=0, le=2)
    actor_id: str = Field(..., min_length=1, max_length=64)
    reason: str | None = None
