from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional

import requests
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from analysis.exercises import (
    EXERCISE_CONFIGS,
    ExerciseConfig,
    JointConfig,
    UnknownExerciseError,
    get_exercise_config,
)
from analysis.feedback import (
    DEFAULT_FEEDBACK_TIMEOUT,
    DEFAULT_FEEDBACK_URL,
    DEFAULT_QUEUE_SIZE,
    FeedbackClient,
    FeedbackDispatcher,
)
from analysis.features import AngleData
from analysis.rep_analyzer import analyze_rep
from analysis.segmenter import RepSegment, RepetitionState, segment_reps
from api.schemas import (
    AngleRange,
    AngleSampleModel,
    DiagnosticsResponse,
    ExerciseConfigModel,
    JointConfigModel,
    LandmarkModel,
    RepAnalysisResponse,
    RepSegmentModel,
    RepetitionStateModel,
    SegmentRequest,
    SegmentResponse,
    ServiceStatus,
)
from pose.landmarks import Landmark


def _get_env_int(name: str, default: int) -> int:
    try:
        v = int(str(os.getenv(name, str(default))).strip())
        return v
    except Exception:
        return default

def _get_env_float(name: str, default: float) -> float:
    try:
        v = float(str(os.getenv(name, str(default))).strip())
        return v
    except Exception:
        return default

def _get_env_str(name: str, default: str) -> str:
    v = str(os.getenv(name, default)).strip()
    return v or default


REPLINE_FEEDBACK_URL = _get_env_str("REPLINE_FEEDBACK_URL", DEFAULT_FEEDBACK_URL)
REPLINE_FEEDBACK_TIMEOUT = _get_env_float("REPLINE_FEEDBACK_TIMEOUT", DEFAULT_FEEDBACK_TIMEOUT)
REPLINE_FEEDBACK_QUEUE_SIZE = _get_env_int("REPLINE_FEEDBACK_QUEUE_SIZE", DEFAULT_QUEUE_SIZE)
REPLINE_ENABLE_VOICE = _get_env_int("REPLINE_ENABLE_VOICE", 0)  # ask the service for TTS audio
REPLINE_ENABLE_RAG = _get_env_int("REPLINE_ENABLE_RAG", 0)
REPLINE_LOG_LEVEL = _get_env_str("REPLINE_LOG_LEVEL", "INFO").upper()
REPLINE_HOST = _get_env_str("REPLINE_HOST", "127.0.0.1")
REPLINE_PORT = _get_env_int("REPLINE_PORT", 8000)

DIAGNOSTICS_TIMEOUT = 5.0


logging.basicConfig(
    level=getattr(logging, REPLINE_LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Process-wide feedback dispatcher, created on first use
_dispatcher: Optional[FeedbackDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> FeedbackDispatcher:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            client = FeedbackClient(
                REPLINE_FEEDBACK_URL,
                timeout=REPLINE_FEEDBACK_TIMEOUT if REPLINE_FEEDBACK_TIMEOUT > 0 else DEFAULT_FEEDBACK_TIMEOUT,
                enable_voice=bool(REPLINE_ENABLE_VOICE),
                enable_rag=bool(REPLINE_ENABLE_RAG),
            )
            _dispatcher = FeedbackDispatcher(
                client,
                maxsize=REPLINE_FEEDBACK_QUEUE_SIZE if REPLINE_FEEDBACK_QUEUE_SIZE > 0 else DEFAULT_QUEUE_SIZE,
            )
            logger.info("Feedback dispatcher started (%s)", REPLINE_FEEDBACK_URL)
        return _dispatcher


def shutdown_dispatcher() -> None:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is not None:
            _dispatcher.close()
            _dispatcher = None


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    shutdown_dispatcher()


app = FastAPI(title="Repline API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _config_to_model(cfg: ExerciseConfig) -> ExerciseConfigModel:
    return ExerciseConfigModel(
        name=cfg.name,
        initial_direction=cfg.initial_direction,
        min_peak_distance=cfg.min_peak_distance,
        joints=[
            JointConfigModel(
                joint=j.joint,
                track_y=j.track_y,
                track_x=j.track_x,
                inverted=j.inverted,
                angle_points=list(j.angle_points) if j.angle_points is not None else None,
            )
            for j in cfg.joints
        ],
    )


def _config_from_model(model: ExerciseConfigModel) -> ExerciseConfig:
    return ExerciseConfig(
        name=model.name,
        initial_direction=model.initial_direction,
        min_peak_distance=model.min_peak_distance,
        joints=tuple(
            JointConfig(
                joint=j.joint,
                track_y=j.track_y,
                track_x=j.track_x,
                inverted=j.inverted,
                angle_points=tuple(j.angle_points) if j.angle_points is not None else None,
            )
            for j in model.joints
        ),
    )


def _landmark(model: LandmarkModel) -> Landmark:
    return Landmark(x=model.x, y=model.y, z=model.z, visibility=model.visibility)


def _landmark_model(lm: Landmark) -> LandmarkModel:
    return LandmarkModel(x=lm.x, y=lm.y, z=lm.z, visibility=lm.visibility)


def _segment_to_model(seg: RepSegment) -> RepSegmentModel:
    return RepSegmentModel(
        rep_number=seg.rep_number,
        exercise_name=seg.exercise_name,
        start_frame_index=seg.start_frame_index,
        end_frame_index=seg.end_frame_index,
        duration_ms=seg.duration_ms,
        angles=[
            AngleSampleModel(
                frame_index=a.frame_index,
                angle_degrees=a.angle_degrees,
                positions=[_landmark_model(p) for p in a.positions],
            )
            for a in seg.angles
        ],
    )


def _segment_from_model(model: RepSegmentModel) -> RepSegment:
    return RepSegment(
        rep_number=model.rep_number,
        exercise_name=model.exercise_name,
        start_frame_index=model.start_frame_index,
        end_frame_index=model.end_frame_index,
        duration_ms=model.duration_ms,
        angles=tuple(
            AngleData(
                frame_index=a.frame_index,
                angle_degrees=a.angle_degrees,
                positions=(_landmark(a.positions[0]), _landmark(a.positions[1]), _landmark(a.positions[2])),
            )
            for a in model.angles
        ),
    )


def _resolve_config(req: SegmentRequest) -> ExerciseConfig:
    if (req.exercise is None) == (req.config is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of 'exercise' or 'config'")
    if req.config is not None:
        try:
            return _config_from_model(req.config)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        return get_exercise_config(req.exercise)
    except UnknownExerciseError:
        raise HTTPException(status_code=404, detail=f"Unknown exercise: {req.exercise}") from None


@app.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return "ok"


@app.get("/exercises", response_model=List[ExerciseConfigModel])
async def list_exercises() -> List[ExerciseConfigModel]:
    return [_config_to_model(cfg) for cfg in EXERCISE_CONFIGS.values()]


@app.get("/exercises/{name}", response_model=ExerciseConfigModel)
async def exercise(name: str) -> ExerciseConfigModel:
    try:
        cfg = get_exercise_config(name)
    except UnknownExerciseError:
        raise HTTPException(status_code=404, detail=f"Unknown exercise: {name}") from None
    return _config_to_model(cfg)


@app.post("/segment", response_model=SegmentResponse)
def segment(req: SegmentRequest) -> SegmentResponse:
    cfg = _resolve_config(req)
    history = [
        None if pose is None else [None if lm is None else _landmark(lm) for lm in pose]
        for pose in req.poses
    ]
    dispatcher = get_dispatcher() if req.dispatch_feedback else None
    result = segment_reps(history, cfg, req.last_processed_rep_count, dispatcher=dispatcher)
    state = RepetitionState(stage=cfg.initial_direction).advance(result)
    return SegmentResponse(
        rep_count=result.rep_count,
        new_rep_segments=[_segment_to_model(s) for s in result.new_rep_segments],
        state=RepetitionStateModel(rep_count=state.rep_count, stage=state.stage, feedback=state.feedback),
    )


@app.post("/analyze-rep", response_model=RepAnalysisResponse)
async def analyze_rep_endpoint(rep: RepSegmentModel) -> RepAnalysisResponse:
    analysis = analyze_rep(_segment_from_model(rep))
    if analysis is None:
        raise HTTPException(status_code=422, detail="Rep segment has no angle data")
    return RepAnalysisResponse(
        exercise_name=analysis.exercise_name,
        rep_number=analysis.rep_number,
        duration=analysis.duration,
        angle_range=AngleRange(min=analysis.angle_min, max=analysis.angle_max),
        average_angle=analysis.average_angle,
        range_of_motion=analysis.range_of_motion,
    )


@app.get("/diagnostics", response_model=DiagnosticsResponse)
def diagnostics() -> DiagnosticsResponse:
    services = {}
    try:
        # Any HTTP answer means the service is reachable; only 5xx is an error
        resp = requests.get(REPLINE_FEEDBACK_URL, timeout=DIAGNOSTICS_TIMEOUT)
        services["feedback"] = ServiceStatus(
            status="CONNECTED" if resp.status_code < 500 else "ERROR",
            status_code=resp.status_code,
            url=REPLINE_FEEDBACK_URL,
        )
    except requests.RequestException as exc:
        services["feedback"] = ServiceStatus(status="FAILED", error=str(exc), url=REPLINE_FEEDBACK_URL)

    return DiagnosticsResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment={
            "REPLINE_FEEDBACK_URL": REPLINE_FEEDBACK_URL,
            "REPLINE_FEEDBACK_TIMEOUT": str(REPLINE_FEEDBACK_TIMEOUT),
            "REPLINE_ENABLE_VOICE": str(REPLINE_ENABLE_VOICE),
            "REPLINE_ENABLE_RAG": str(REPLINE_ENABLE_RAG),
            "REPLINE_LOG_LEVEL": REPLINE_LOG_LEVEL,
        },
        services=services,
    )


def serve() -> None:
    uvicorn.run(app, host=REPLINE_HOST, port=REPLINE_PORT, log_level=REPLINE_LOG_LEVEL.lower())


if __name__ == "__main__":
    serve()
