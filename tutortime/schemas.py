# TutorTime - Request Schemas
# Pydantic request bodies (camelCase on the wire)

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClockOutRequest(CamelModel):
    finalize: bool = False
    # Validated by the service: parsed leniently, then scope/date/signature checked
    schedule_snapshot: Optional[Any] = None


class SaveDayRequest(CamelModel):
    sessions: Any = None


class SubmitDayRequest(CamelModel):
    schedule_snapshot: Optional[Any] = None


class DecideRequest(CamelModel):
    decision: Optional[str] = None
    reason: Optional[str] = None


class AdminFixRequest(CamelModel):
    sessions: Any = None
    reason: Optional[str] = None


class SignAttestationRequest(CamelModel):
    typed_name: Optional[str] = None
