from fastapi import APIRouter, Depends

from ..config import RL_SUBMIT_LIMIT, RL_WINDOW_SECONDS
from ..deps import current_user_id, get_survey_service
from ..schemas import SubmitResponseRequest, SubmitResponseResult
from ..services.rate_limit import rate_limit_dependency
from ..services.survey_service import SurveyService

router = APIRouter()
scaffold_router = APIRouter()

RL_SUBMIT = rate_limit_dependency("response_submit", RL_SUBMIT_LIMIT, RL_WINDOW_SECONDS)


@scaffold_router.get("/health")
def responses_scaffold_health() -> dict[str, str]:
    return {"status": "ok", "module": "responses"}


@router.post("/surveys/{survey_id}/responses", status_code=201, response_model=SubmitResponseResult)
def submit_response(
    survey_id: str,
    payload: SubmitResponseRequest,
    user_id: str = Depends(current_user_id),
    service: SurveyService = Depends(get_survey_service),
    _: None = RL_SUBMIT,
) -> SubmitResponseResult:
    survey, count = service.submit_response(survey_id, user_id, payload.answers)
    return SubmitResponseResult(
        status="recorded",
        response_count=count,
        results=service.respondent_results(survey),
    )
