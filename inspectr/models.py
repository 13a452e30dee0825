from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

HeaderValue = Union[str, List[str]]


def utc_timestamp(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2025-02-14T00:00:00.000Z"""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RequestRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: str = ""
    headers: Dict[str, HeaderValue] = Field(default_factory=dict)
    query_params: Dict[str, str] = Field(default_factory=dict, alias="queryParams")
    timestamp: str = ""


class ResponseRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: str = ""
    headers: Dict[str, HeaderValue] = Field(default_factory=dict)
    status_code: int = Field(0, alias="statusCode")
    status_message: str = Field("", alias="statusMessage")
    timestamp: str = ""


class Transaction(BaseModel):
    """One finalized exchange. Serialized with camelCase wire names."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    method: str
    url: str
    server: str = ""
    path: str
    client_ip: str = Field("", alias="clientIp")
    timestamp: str = Field(..., description="Request arrival, ISO-8601 UTC")
    latency: int = Field(0, ge=0, description="Milliseconds from arrival to response finish")
    request: RequestRecord = Field(default_factory=RequestRecord)
    response: ResponseRecord = Field(default_factory=ResponseRecord)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
