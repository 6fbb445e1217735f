from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from typing import Optional

from core.errors import ValidationError

class OnboardingStartSchema(BaseModel):
    userId: str = Field(min_length=1)
    successUrl: Optional[str] = None
    failureUrl: Optional[str] = None

class OAuthCallbackSchema(BaseModel):
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

class ReportRequestSchema(BaseModel):
    stripeAccountId: str = Field(min_length=1)

def parse_and_validate(schema, data):
    try:
        return schema(**data)
    except PydanticValidationError as e:
        details = [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in e.errors()]
        raise ValidationError("Missing or malformed request fields.", details=details) from e
