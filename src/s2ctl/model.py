import re
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from s2ctl.aoi import AreaOfInterest
from s2ctl.dates import DEFAULT_END_OFFSET, DEFAULT_START_OFFSET
from s2ctl.tiles import normalize_tile_id

# Constants
DEFAULT_CLOUD_PERCENTAGE = 30.0
DEFAULT_RESULTS_LIMIT = 10
SAFE_SUFFIX = ".SAFE"

# MMM_MSIXXX_YYYYMMDDTHHMMSS_Nxxyy_ROOO_Txxxxx_<discriminator>
COMPACT_NAME_PATTERN = re.compile(
    r"^(?P<platform>S2[ABCD])_(?P<product_type>MSIL1C|MSIL2A)_(?P<sensing>\d{8}T\d{6})"
    r"_N(?P<baseline>\d{4})_R(?P<orbit>\d{3})_T(?P<tile>\d{2}[A-Z]{3})_(?P<discriminator>\d{8}T\d{6})$"
)


class ProductStore(str, Enum):
    SCIHUB = "SCIHUB"
    AWS = "AWS"


class FillAnglesMethod(str, Enum):
    NONE = "NONE"
    NAN = "NAN"
    INTERPOLATE = "INTERPOLATE"


class ReturnCode(IntEnum):
    OK = 0
    DOWNLOAD_ERROR = 1
    INVALID_INPUT = 2
    MISSING_INPUT = 3


class ProductDescriptor(BaseModel):
    """One remote product: its name and, for the catalog store, its unique id."""

    name: str
    uuid: str | None = None
    cloud_percentage: float | None = None

    @field_validator("name")
    @classmethod
    def strip_safe_suffix(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Product name cannot be empty")
        return value[: -len(SAFE_SUFFIX)] if value.endswith(SAFE_SUFFIX) else value

    @property
    def _parts(self) -> dict[str, str] | None:
        match = COMPACT_NAME_PATTERN.match(self.name)
        return match.groupdict() if match else None

    @property
    def is_compact(self) -> bool:
        return self._parts is not None

    @property
    def platform(self) -> str | None:
        parts = self._parts
        return parts["platform"] if parts else None

    @property
    def sensing_time(self) -> datetime | None:
        parts = self._parts
        if parts is None:
            return None
        return datetime.strptime(parts["sensing"], "%Y%m%dT%H%M%S").replace(tzinfo=timezone.utc)

    @property
    def relative_orbit(self) -> int | None:
        parts = self._parts
        return int(parts["orbit"]) if parts else None

    @property
    def tile_id(self) -> str | None:
        parts = self._parts
        return parts["tile"] if parts else None

    @property
    def safe_name(self) -> str:
        return f"{self.name}{SAFE_SUFFIX}"

    def __str__(self) -> str:
        return f"Product(name={self.name})"


class SearchConfiguration(BaseModel):
    """Shared search surface of every strategy; frozen once built."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    aoi: AreaOfInterest = Field(default_factory=AreaOfInterest)
    cloud_percentage: float = Field(default=DEFAULT_CLOUD_PERCENTAGE, ge=0, le=100)
    relative_orbit: int | None = Field(default=None, ge=0)
    limit: int = Field(default=DEFAULT_RESULTS_LIMIT, gt=0)
    start: int = DEFAULT_START_OFFSET
    end: int = DEFAULT_END_OFFSET
    tiles: frozenset[str] = frozenset()

    @field_validator("aoi")
    @classmethod
    def freeze_area(cls, value: AreaOfInterest) -> AreaOfInterest:
        return value.freeze()

    @field_validator("tiles", mode="before")
    @classmethod
    def normalize_tiles(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        return frozenset(normalize_tile_id(tile_id) for tile_id in value if tile_id.strip())

    @model_validator(mode="after")
    def validate_window(self):
        if self.start > self.end:
            raise ValueError(
                f"Invalid sensing window: start offset ({self.start}) must not be after end offset ({self.end})"
            )
        return self


class ProgressEventType(Enum):
    TASK_CREATED = "task_created"
    TASK_DURATION = "task_duration"
    TASK_PROGRESS = "task_progress"
    TASK_COMPLETED = "task_completed"
    BATCH_STARTED = "batch_started"
    BATCH_COMPLETED = "batch_completed"


class ProgressEvent(BaseModel):
    type: ProgressEventType
    task_id: str
    data: dict[str, Any]
