# canceldemo/api/models.py
from __future__ import annotations
from datetime import date

from pydantic import BaseModel, ConfigDict, computed_field

__all__ = ["DelayResult", "WeatherForecast"]



class DelayResult(BaseModel):
    """Success payload of every delay endpoint."""
    model_config = ConfigDict(extra="forbid")

    message: str
    server: str
    method: str | None = None   # Only the pipeline host reports which variant served it

    @classmethod
    def after(cls, seconds: int, server: str, method: str | None = None) -> DelayResult:
        return cls(message=f"Completed after {seconds} seconds", server=server, method=method)



class WeatherForecast(BaseModel):
    date: date
    temperatureC: int
    summary: str | None = None

    @computed_field
    @property
    def temperatureF(self) -> int:
        return 32 + int(self.temperatureC / 0.5556)
