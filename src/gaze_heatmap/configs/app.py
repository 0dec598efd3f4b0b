import logging
from pathlib import Path
from importlib.metadata import version
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, PositiveInt, PositiveFloat, model_validator, Field

from .utils import LoggingConfig

logger = logging.getLogger(__name__)

RGB = tuple[int, int, int]


class CollectorSettings(BaseModel):
    """Settings for a timed gaze collection session."""
    duration_s: PositiveInt = Field(30, description="Nominal session length in seconds.")
    queue_size: PositiveInt = Field(1024, description="Capacity of the gaze point queue between source and collector.")
    scroll_poll_interval_s: PositiveFloat = Field(
        0.1,
        description="Period of the scroll position poll that backs up missed scroll events."
    )
    viewport_width: Optional[PositiveInt] = Field(
        None,
        description="Width of the browser viewport the gaze is captured in. Maps gaze x onto the screenshot."
    )
    viewport_height: Optional[PositiveInt] = Field(None, description="Height of the capture viewport.")


class RendererSettings(BaseModel):
    """
    Parameters of the heat accumulation and compositing pass.
    Ramp stops are (lower alpha bound, RGB) pairs in ascending order.
    """
    radius_px: PositiveInt = Field(40, description="Radius of the disc splatted for each sample.")
    intensity: float = Field(0.4, gt=0, le=1, description="Alpha contributed at the center of a disc.")
    opacity: float = Field(0.7, ge=0, le=1, description="Global opacity of the heat layer when composited.")
    blend_mode: Literal["multiply", "normal"] = "multiply"
    color_stops: list[tuple[float, RGB]] = Field(
        default=[
            (0.0, (0, 0, 255)),
            (0.25, (0, 255, 0)),
            (0.5, (255, 255, 0)),
            (0.75, (255, 0, 0)),
        ],
        description="Discrete color ramp. An alpha equal to a bound falls into that bound's bucket."
    )

    @model_validator(mode='after')
    def validate_color_stops(self) -> "RendererSettings":
        if not self.color_stops:
            raise ValueError('Color ramp needs at least one stop.')
        bounds = [bound for bound, _ in self.color_stops]
        if bounds[0] != 0.0:
            raise ValueError('First color stop must start at 0.0.')
        if any(b >= a for b, a in zip(bounds, bounds[1:])) or bounds[-1] > 1.0:
            raise ValueError('Color stop bounds must be strictly increasing within [0, 1].')
        for _, rgb in self.color_stops:
            if any(not 0 <= c <= 255 for c in rgb):
                raise ValueError('Color stop channels must be within [0, 255].')
        return self


class DummySourceConfig(BaseModel):
    frequency: PositiveInt = 30
    viewport_width: PositiveInt = 1280
    viewport_height: PositiveInt = 720
    radius_px: float = 200.0
    speed: float = 0.25  # revolutions per second
    scroll_speed_px_s: float = Field(50.0, ge=0)
    max_scroll_px: float = Field(1440.0, ge=0)


class ZmqSourceConfig(BaseModel):
    enabled: bool = False
    endpoint: str = "tcp://localhost:5555"


class StorageSettings(BaseModel):
    backend: Literal["json", "parquet"] = "json"
    path: Path = Path("./gaze_analysis_data.json")


class ScreenshotSettings(BaseModel):
    service_url: Optional[str] = Field(None, description="Screenshot service endpoint. None means file-based screenshots.")
    viewport_width: PositiveInt = 1280
    viewport_height: PositiveInt = 800
    device_scale: PositiveFloat = 1.0
    timeout_s: PositiveFloat = 60.0
    retry_attempts: PositiveInt = 3
    retry_backoff_factor_s: float = Field(0.5, ge=0)


class ExportSettings(BaseModel):
    output_dir: Path = Path("./exports")
    http_url: Optional[str] = Field(None, description="If set, exports are POSTed here instead of written to disk.")
    retry_attempts: PositiveInt = 3
    retry_backoff_factor_s: float = Field(0.5, ge=0)


class AppSettings(BaseSettings):
    """
    Main application settings, loaded from environment variables and defaults.
    """
    # Sources
    use_dummy_mode: bool = False
    dummy: DummySourceConfig = Field(default_factory=DummySourceConfig)
    zmq: ZmqSourceConfig = Field(default_factory=ZmqSourceConfig)

    # Session
    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    # Output
    renderer: RendererSettings = Field(default_factory=RendererSettings)
    screenshot: ScreenshotSettings = Field(default_factory=ScreenshotSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)

    # Logging
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    __version__: str = version("gaze-heatmap")

    model_config = SettingsConfigDict(
        env_prefix="GAZE_HEATMAP__",
        env_file=".env",
        env_nested_delimiter='__',
        case_sensitive=False
    )
