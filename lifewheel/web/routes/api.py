from __future__ import annotations

import io
import json
import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from lifewheel.application import api as app_api
from lifewheel.domain.models import CATEGORIES, Step, UserContext, WheelEntry
from lifewheel.domain.services import HistoryAggregator
from lifewheel.infrastructure.config import AssessmentConfig, get_settings
from lifewheel.infrastructure.exceptions import InvalidTransitionError
from lifewheel.infrastructure.repositories import SqlHistoryStore, SqlSettingsStore
from lifewheel.utils.exports import entries_frame, make_json_export_payload, make_xlsx_export_bytes
from lifewheel.utils.wheel_chart import (
    make_category_average_figure,
    make_trend_figure,
    make_wheel_figure,
)
from lifewheel.web.dependencies import (
    AssessmentRegistry,
    get_actor,
    get_assessment_config,
    get_db_session,
    get_history_store,
    get_narrative_generator,
    get_registry,
    get_settings_store,
)
from lifewheel.web.schemas import (
    AdminSettingsPayload,
    AdminStatisticsResponse,
    AssessmentCreateRequest,
    CategoryResponse,
    NotificationRequest,
    NotificationResponse,
    PersistRetryResponse,
    RegisterRequest,
    ReportRequest,
    ReportResponse,
    ScoreUpdateRequest,
    TrendPointResponse,
    TrendResponse,
    UserResponse,
    WheelEntryResponse,
)

router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


def _figure_dict(fig) -> dict[str, Any]:
    return json.loads(fig.to_json())


def _user_response(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        name=user.name,
        mobile=user.mobile,
        age=user.age,
        email=user.email,
        role=user.role.value,
    )


def _entry_response(entry: WheelEntry) -> WheelEntryResponse:
    return WheelEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        created_at=entry.created_at,
        scores=dict(entry.scores),
        narrative=entry.narrative,
        contact_email=entry.contact_email,
        average=round(HistoryAggregator(CATEGORIES).entry_average(entry), 2),
    )


@router.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", **get_settings().get_environment_info()}


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories() -> list[CategoryResponse]:
    return [CategoryResponse(id=c.id, name=c.name, color=c.color) for c in CATEGORIES]


# -- users --------------------------------------------------------------------


@router.post("/users/register", response_model=UserResponse)
def register_user_endpoint(
    payload: RegisterRequest,
    session: Session = Depends(get_db_session),
    config: AssessmentConfig = Depends(get_assessment_config),
) -> UserResponse:
    user = app_api.register_user(session, payload.model_dump(), assessment_config=config)
    return _user_response(user)


@router.get("/users", response_model=list[UserResponse])
def list_users_endpoint(
    session: Session = Depends(get_db_session),
    actor: UserContext = Depends(get_actor),
) -> list[UserResponse]:
    return [_user_response(u) for u in app_api.list_users(session, actor)]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user_endpoint(user_id: str, session: Session = Depends(get_db_session)) -> UserResponse:
    return _user_response(app_api.get_user(session, user_id))


@router.get("/users/{user_id}/history", response_model=list[WheelEntryResponse])
def user_history_endpoint(
    user_id: str,
    session: Session = Depends(get_db_session),
    store: SqlHistoryStore = Depends(get_history_store),
) -> list[WheelEntryResponse]:
    app_api.get_user(session, user_id)
    return [_entry_response(e) for e in app_api.user_history(store, user_id)]


@router.get("/users/{user_id}/trend", response_model=TrendResponse)
def user_trend_endpoint(
    user_id: str,
    window_size: int | None = Query(default=None, ge=1, le=100),
    session: Session = Depends(get_db_session),
    store: SqlHistoryStore = Depends(get_history_store),
    config: AssessmentConfig = Depends(get_assessment_config),
) -> TrendResponse:
    app_api.get_user(session, user_id)
    window = window_size or config.trend_window
    points = app_api.user_trend(store, user_id, window)
    return TrendResponse(
        user_id=user_id,
        window_size=window,
        points=[
            TrendPointResponse(label=p.label, created_at=p.created_at, average=round(p.average, 2))
            for p in points
        ],
        figure=_figure_dict(make_trend_figure(points)),
    )


# -- settings -----------------------------------------------------------------


@router.get("/settings", response_model=AdminSettingsPayload)
def get_settings_endpoint(
    store: SqlSettingsStore = Depends(get_settings_store),
) -> AdminSettingsPayload:
    return AdminSettingsPayload(**app_api.load_admin_settings(store).to_dict())


@router.put("/settings", response_model=AdminSettingsPayload)
def save_settings_endpoint(
    payload: AdminSettingsPayload,
    store: SqlSettingsStore = Depends(get_settings_store),
    actor: UserContext = Depends(get_actor),
) -> AdminSettingsPayload:
    saved = app_api.save_admin_settings(store, actor, payload.model_dump())
    return AdminSettingsPayload(**saved.to_dict())


# -- assessments --------------------------------------------------------------


@router.post("/assessments", status_code=status.HTTP_201_CREATED)
async def create_assessment(
    payload: AssessmentCreateRequest,
    session: Session = Depends(get_db_session),
    history_store: SqlHistoryStore = Depends(get_history_store),
    settings_store: SqlSettingsStore = Depends(get_settings_store),
    narrative=Depends(get_narrative_generator),
    config: AssessmentConfig = Depends(get_assessment_config),
    registry: AssessmentRegistry = Depends(get_registry),
) -> dict[str, Any]:
    user = await run_in_threadpool(app_api.get_user_context, session, payload.user_id)
    assessment = await run_in_threadpool(
        app_api.open_assessment_session,
        user,
        history_store,
        settings_store,
        narrative,
        assessment_config=config,
    )
    return registry.add(assessment).view()


@router.get("/assessments/{session_id}")
async def get_assessment(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> dict[str, Any]:
    return registry.get(session_id).view()


@router.delete("/assessments/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_assessment(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> Response:
    registry.remove(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/assessments/{session_id}/rating")
async def begin_rating(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> dict[str, Any]:
    assessment = registry.get(session_id)
    assessment.begin_rating()
    return assessment.view()


@router.put("/assessments/{session_id}/scores/{category_id}")
async def update_score(
    session_id: str,
    category_id: str,
    payload: ScoreUpdateRequest,
    registry: AssessmentRegistry = Depends(get_registry),
) -> dict[str, Any]:
    assessment = registry.get(session_id)
    if assessment.step != Step.RATING:
        raise InvalidTransitionError(assessment.step.value, "set_score")
    assessment.select_category(category_id)
    assessment.set_score(payload.score)
    return assessment.view()


@router.post("/assessments/{session_id}/process", status_code=status.HTTP_202_ACCEPTED)
async def start_processing(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> dict[str, Any]:
    assessment = registry.get(session_id)
    assessment.start_processing()
    return assessment.view()


@router.post("/assessments/{session_id}/redo")
async def redo_assessment(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> dict[str, Any]:
    assessment = registry.get(session_id)
    assessment.redo()
    return assessment.view()


@router.post("/assessments/{session_id}/persist/retry", response_model=PersistRetryResponse)
async def retry_persist(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> PersistRetryResponse:
    assessment = registry.get(session_id)
    saved = await assessment.retry_persist()
    return PersistRetryResponse(
        saved=saved, unsaved_count=len(assessment.unsaved), notice=assessment.notice
    )


@router.post("/assessments/{session_id}/report", response_model=ReportResponse)
async def request_report(
    session_id: str,
    payload: ReportRequest,
    registry: AssessmentRegistry = Depends(get_registry),
) -> ReportResponse:
    assessment = registry.get(session_id)
    if assessment.step != Step.RESULT or assessment.entry is None:
        raise InvalidTransitionError(assessment.step.value, "report")
    delivery = app_api.request_report_delivery(assessment.entry, payload.email)
    return ReportResponse(
        entry_id=delivery.entry_id, email=delivery.email, queued_at=delivery.queued_at
    )


@router.get("/assessments/{session_id}/figure")
async def assessment_figure(
    session_id: str, registry: AssessmentRegistry = Depends(get_registry)
) -> dict[str, Any]:
    assessment = registry.get(session_id)
    scores = dict(assessment.board) if assessment.board is not None else {}
    return _figure_dict(make_wheel_figure(scores, assessment.categories))


# -- admin --------------------------------------------------------------------


@router.get("/admin/statistics", response_model=AdminStatisticsResponse)
def admin_statistics_endpoint(
    session: Session = Depends(get_db_session),
    store: SqlHistoryStore = Depends(get_history_store),
    actor: UserContext = Depends(get_actor),
) -> AdminStatisticsResponse:
    stats = app_api.admin_statistics(session, store, actor)
    return AdminStatisticsResponse(
        **stats,
        figure=_figure_dict(make_category_average_figure(stats["category_averages"])),
    )


@router.get("/admin/export")
def admin_export(
    fmt: Literal["json", "xlsx"] = Query(default="json", alias="format"),
    session: Session = Depends(get_db_session),
    store: SqlHistoryStore = Depends(get_history_store),
    actor: UserContext = Depends(get_actor),
):
    entries = app_api.list_all_entries(store, actor)
    users = app_api.list_users(session, actor)
    df = entries_frame(entries, users)

    if fmt == "xlsx":
        data = make_xlsx_export_bytes(df)
        return StreamingResponse(
            io.BytesIO(data),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": 'attachment; filename="wheel_of_life_history.xlsx"'},
        )
    return Response(
        content=make_json_export_payload(df),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="wheel_of_life_history.json"'},
    )


@router.post("/admin/notifications", response_model=NotificationResponse)
def broadcast_notification_endpoint(
    payload: NotificationRequest,
    session: Session = Depends(get_db_session),
    actor: UserContext = Depends(get_actor),
) -> NotificationResponse:
    queued = app_api.broadcast_notification(session, actor, payload.channel)
    return NotificationResponse(channel=payload.channel, queued=queued)
