from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, conlist


class LandmarkModel(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class JointConfigModel(BaseModel):
    joint: int = Field(ge=0, le=32, description="BlazePose landmark index")
    track_y: bool = True
    track_x: bool = False
    inverted: bool = False
    angle_points: Optional[conlist(int, min_length=3, max_length=3)] = Field(
        default=None,
        description="[point1, vertex, point3] landmark indices",
    )


class ExerciseConfigModel(BaseModel):
    name: str
    joints: List[JointConfigModel] = Field(min_length=1)
    min_peak_distance: int = Field(ge=1, description="frames between same-kind extrema")
    initial_direction: Literal["up", "down"] = "up"


class SegmentRequest(BaseModel):
    exercise: Optional[str] = Field(default=None, description="registry name, e.g. squat")
    config: Optional[ExerciseConfigModel] = None
    # One entry per frame; null for frames without a pose, null landmarks where a joint is missing
    poses: List[Optional[List[Optional[LandmarkModel]]]]
    last_processed_rep_count: int = Field(0, ge=0)
    dispatch_feedback: bool = False


class AngleSampleModel(BaseModel):
    frame_index: int = Field(ge=0)
    angle_degrees: float = Field(ge=0.0, le=180.0)
    positions: List[LandmarkModel] = Field(min_length=3, max_length=3)


class RepSegmentModel(BaseModel):
    rep_number: int = Field(ge=1)
    exercise_name: str
    start_frame_index: int = Field(ge=0)
    end_frame_index: int = Field(ge=0)
    angles: List[AngleSampleModel] = Field(default_factory=list)
    duration_ms: float = Field(ge=0.0)


class RepetitionStateModel(BaseModel):
    rep_count: int = Field(0, ge=0)
    stage: Literal["up", "down"]
    feedback: Optional[str] = None


class SegmentResponse(BaseModel):
    rep_count: int = Field(ge=0)
    new_rep_segments: List[RepSegmentModel]
    state: RepetitionStateModel


class AngleRange(BaseModel):
    min: float
    max: float


class RepAnalysisResponse(BaseModel):
    exercise_name: str
    rep_number: int
    duration: int = Field(description="milliseconds, 30 fps approximation")
    angle_range: AngleRange
    average_angle: float
    range_of_motion: float


class ServiceStatus(BaseModel):
    status: str = Field(description="CONNECTED | ERROR | FAILED")
    url: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


class DiagnosticsResponse(BaseModel):
    timestamp: str
    environment: Dict[str, str]
    services: Dict[str, ServiceStatus]
