from pydantic import BaseModel, ConfigDict, Field, field_validator


class Provider(BaseModel):
    """One lineup provider returned by the postal code lookup"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field("", description="Provider type (e.g. 'OTA', 'CABLE')")
    name: str = Field("", description="Provider name")
    location: str = Field("", description="Provider service area")
    headend_id: str = Field("", alias="headendId", description="Headend identifier")
    lineup_id: str = Field("", alias="lineupId", description="Lineup identifier")
    device: str = Field("", description="Device string to send with grid requests")

    @field_validator("type", "name", "location", "headend_id", "lineup_id", "device", mode="before")
    @classmethod
    def coerce_text(cls, v) -> str:
        """Upstream omits or nulls fields freely; render them as text"""
        if v is None:
            return ""
        return str(v)


class ProvidersResponse(BaseModel):
    """Provider lookup response"""
    country: str
    zip_code: str
    language: str
    count: int
    providers: list[Provider]


class BuildResponse(BaseModel):
    """Summary of a completed guide build"""
    status: str
    started_at: str
    completed_at: str
    duration_seconds: float
    windows_fetched: int
    channels: int
    programmes: int
    output_file: str
    snapshot_file: str | None = None
    snapshots_deleted: int = 0


class HealthResponse(BaseModel):
    status: str
    scheduler_running: bool
    next_fetch: str | None = None
    guide_exists: bool
