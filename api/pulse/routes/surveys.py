from typing import Any

from fastapi import APIRouter, Depends, Response

from ..config import RL_CREATE_LIMIT, RL_WINDOW_SECONDS
from ..deps import current_user_id, get_survey_service, optional_user_id
from ..errors import AlreadyClosed
from ..schemas import CreateSurveyRequest
from ..services.rate_limit import rate_limit_dependency
from ..services.survey_service import SurveyService

router = APIRouter()
scaffold_router = APIRouter()

RL_CREATE = rate_limit_dependency("survey_create", RL_CREATE_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def surveys_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "surveys"}


@router.post("/surveys", status_code=201)
def create_survey(
    payload: CreateSurveyRequest,
    user_id: str = Depends(current_user_id),
    service: SurveyService = Depends(get_survey_service),
    _: None = RL_CREATE,
) -> dict[str, Any]:
    return service.create_from_text(user_id, payload)


@router.get("/surveys/mine")
def list_my_surveys(
    user_id: str = Depends(current_user_id),
    service: SurveyService = Depends(get_survey_service),
) -> dict[str, Any]:
    return {"surveys": service.get_user_surveys(user_id)}


@router.get("/surveys/{survey_id}")
def get_survey(survey_id: str, service: SurveyService = Depends(get_survey_service)) -> dict[str, Any]:
    return service.require_survey(survey_id)


@router.get("/surveys/{survey_id}/responded")
def has_responded(
    survey_id: str,
    user_id: str = Depends(current_user_id),
    service: SurveyService = Depends(get_survey_service),
) -> dict[str, Any]:
    survey = service.require_survey(survey_id)
    return {
        "survey_id": survey["id"],
        "status": survey.get("status"),
        "responded": service.has_user_responded(survey_id, user_id),
    }


@router.post("/surveys/{survey_id}/close")
def close_survey(
    survey_id: str,
    user_id: str = Depends(current_user_id),
    service: SurveyService = Depends(get_survey_service),
) -> dict[str, Any]:
    try:
        survey = service.close_as(survey_id, user_id)
    except AlreadyClosed as exc:
        return {"status": exc.reason, "detail": exc.detail, "survey": service.require_survey(survey_id)}
    return {"status": "closed", "survey": survey}


@router.get("/surveys/{survey_id}/results")
def get_results(
    survey_id: str,
    user_id: str | None = Depends(optional_user_id),
    service: SurveyService = Depends(get_survey_service),
) -> dict[str, Any]:
    return service.results_for(survey_id, user_id)


@router.get("/surveys/{survey_id}/results/share")
def get_shared_results(survey_id: str, service: SurveyService = Depends(get_survey_service)) -> dict[str, Any]:
    return service.share_results(survey_id)


@router.get("/surveys/{survey_id}/export.csv")
def export_csv(
    survey_id: str,
    user_id: str = Depends(current_user_id),
    service: SurveyService = Depends(get_survey_service),
) -> Response:
    survey, csv_text = service.export_csv_as(survey_id, user_id)
    return Response(
        content=csv_text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="pulse-survey-{survey["id"]}-results.csv"'},
    )
