from pydantic import BaseModel


class ReadinessCheckResponse(BaseModel):
    name: str
    passed: bool
    required: bool
    hint: str

    model_config = {"from_attributes": True}


class ReadinessResponse(BaseModel):
    mode: str
    ready: bool
    missing: list[str]
    checks: list[ReadinessCheckResponse]
