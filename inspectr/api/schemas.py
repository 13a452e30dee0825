from pydantic import BaseModel


class PublishResponse(BaseModel):
    status: str = "Broadcast sent"
    delivered: int


class ReplayResponse(BaseModel):
    success: bool = True
    status: int
    data: str


class HealthResponse(BaseModel):
    status: str
    message: str
    service: str
    version: str
    date: str
    subscribers: int
