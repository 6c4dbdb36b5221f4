from pydantic import BaseModel, Field


class FieldIssueOut(BaseModel):
    field: str = Field(examples=["weightGrams"])
    message: str
    type: str | None = None


class ErrorBodyOut(BaseModel):
    code: str = Field(examples=["bad_request"])
    message: str = Field(examples=["Invalid postal code"])
    request_id: str
    path: str = Field(examples=["/shipping/quote"])
    details: list[FieldIssueOut] | None = None


class ErrorOut(BaseModel):
    error: ErrorBodyOut
