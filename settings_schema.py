from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

Theme = Literal["light", "dark"]
WeightUnit = Literal["kg", "lbs"]


class SettingsSchema(BaseModel):
    theme: Theme = "light"
    default_weight_unit: WeightUnit = "kg"


class AppConfigSchema(BaseModel):
    backend_url: Optional[str] = None
    api_key: Optional[str] = None
    user_id: str = Field("temp-user-123", min_length=1)
    database_path: str = "fittrack.db"
    storage_path: str = "fittrack_storage.db"
    rest_timer_seconds: int = Field(90, ge=10)
    request_timeout: float = Field(10.0, gt=0)
    log_level: str = "INFO"


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def validate_app_config(data: dict) -> AppConfigSchema:
    try:
        return AppConfigSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
