from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Request Models ---


class RenderForm(BaseModel):
    """
    Fields accepted by the render endpoint, from a query string, a form or a
    JSON body. Anything left out falls back to the configured defaults.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str = Field(min_length=1)
    kind: Optional[str] = None
    width: Optional[int] = Field(default=None, ge=0)
    height: Optional[int] = Field(default=None, ge=0)
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    timeout: Optional[float] = Field(default=None, ge=0)
    delay: Optional[float] = Field(default=None, ge=0)
    as_pdf: Optional[bool] = Field(default=None, alias="asPDF")
    full_page: Optional[bool] = Field(default=None, alias="fullPage")
    script: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def url_has_scheme(cls, value: str) -> str:
        value = value.strip()
        if "://" not in value and not value.startswith(("data:", "about:")):
            raise ValueError("url must be absolute, e.g. https://example.com")
        return value


# --- Response Models ---


class HealthResponse(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str
