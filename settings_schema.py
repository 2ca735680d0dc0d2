from typing import Literal

from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    weight_unit: Literal["lbs", "kg"] = "lbs"
    rpe_scale: int = 10
    import_batch_size: int = Field(default=500, ge=1)
    weight_rounding: float = Field(default=5.0, gt=0)
    deload_week_factor: float = Field(default=0.9, gt=0, le=1)
    rest_timer_preset: int = Field(default=90, ge=0)
    game_enabled: bool = True
    log_level: str = "INFO"
    sync_token: str | bool | None = None
    backup_passphrase: str | bool | None = None


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
