"""
Channel identity and configuration validation
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import AnyHttpUrl, BaseModel, EmailStr, Field, TypeAdapter, ValidationError

_email_adapter = TypeAdapter(EmailStr)
_url_adapter = TypeAdapter(AnyHttpUrl)


@dataclass
class ConfigValidation:
    valid: bool
    error: Optional[str] = None


class WebhookHeader(BaseModel):
    key: str = Field(min_length=1)
    value: str


class WebhookChannelConfig(BaseModel):
    """Stored in page_subscriber.channel_config as JSON"""
    headers: Optional[list[WebhookHeader]] = None
    secret: Optional[str] = None


def validate_email_config(value: Any) -> ConfigValidation:
    """Valid iff value is a syntactically valid email address"""
    try:
        _email_adapter.validate_python(value)
    except ValidationError as e:
        return ConfigValidation(valid=False, error=str(e))
    return ConfigValidation(valid=True)


def validate_webhook_url(value: Any) -> ConfigValidation:
    try:
        _url_adapter.validate_python(value)
    except ValidationError as e:
        return ConfigValidation(valid=False, error=str(e))
    return ConfigValidation(valid=True)


def validate_webhook_config(value: Any) -> ConfigValidation:
    """Valid iff value is an object with optional {key, value} headers and an optional secret"""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            return ConfigValidation(valid=False, error=f"Invalid JSON: {e}")

    try:
        WebhookChannelConfig.model_validate(value)
    except ValidationError as e:
        return ConfigValidation(valid=False, error=str(e))
    return ConfigValidation(valid=True)
