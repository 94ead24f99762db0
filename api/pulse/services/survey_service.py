"""Operations the messaging boundary calls into.

The first group is the plain storage contract (create/get/update/close,
responses, dedup, user index, parsing, aggregation). The second group wires
those into the user-facing workflows and turns failed preconditions into the
typed outcomes of ``pulse.errors``.
"""

from __future__ import annotations

import logging
from typing import Any

from ..blob_store import BlobStore
from ..errors import (
    AlreadyClosed,
    AlreadyResponded,
    Forbidden,
    MalformedInput,
    NotFound,
    StorageError,
    SurveyClosed,
)
from ..response_repo import ResponseLedger
from ..schemas import CreateSurveyRequest, SurveySpec, ViewerContext
from ..survey_repo import SurveyRepository
from ..tracking_repo import DedupTracker
from ..user_index_repo import UserSurveyIndex
from . import question_parser, results
from .answers import validate_submission
from .state_machine import CLOSED, accepts_responses

logger = logging.getLogger(__name__)


class SurveyService:
    def __init__(self, store: BlobStore, dedup_secret: str) -> None:
        self.surveys = SurveyRepository(store)
        self.responses = ResponseLedger(store, self.surveys)
        self.tracking = DedupTracker(store, dedup_secret)
        self.user_index = UserSurveyIndex(store, self.surveys)

    # -- storage contract --------------------------------------------------

    def create_survey(self, spec: SurveySpec) -> dict[str, Any]:
        return self.surveys.create(spec)

    def get_survey(self, survey_id: str) -> dict[str, Any] | None:
        return self.surveys.get(survey_id)

    def update_survey(self, survey_id: str, partial: dict[str, Any]) -> dict[str, Any] | None:
        return self.surveys.update(survey_id, partial)

    def close_survey(self, survey_id: str) -> dict[str, Any] | None:
        return self.surveys.close(survey_id)

    def add_response(self, survey_id: str, answers: dict[str, Any]) -> int:
        return self.responses.append(survey_id, answers)

    def get_responses(self, survey_id: str) -> list[dict[str, Any]]:
        return self.responses.list(survey_id)

    def has_user_responded(self, survey_id: str, user_id: str) -> bool:
        return self.tracking.has_responded(survey_id, user_id)

    def mark_user_responded(self, survey_id: str, user_id: str) -> bool:
        return self.tracking.mark_responded(survey_id, user_id)

    def add_survey_to_user_index(self, user_id: str, survey_id: str) -> None:
        self.user_index.add(user_id, survey_id)

    def get_user_surveys(self, user_id: str) -> list[dict[str, Any]]:
        return self.user_index.list(user_id)

    @staticmethod
    def parse_questions(raw_text: str, raw_options: str = ""):
        return question_parser.parse_questions(raw_text, raw_options)

    @staticmethod
    def build_results_data(survey: dict[str, Any], responses: list[dict[str, Any]], viewer: ViewerContext | None = None) -> dict[str, Any]:
        return results.build_results_data(survey, responses, viewer)

    @staticmethod
    def build_csv_export(survey: dict[str, Any], responses: list[dict[str, Any]]) -> str:
        return results.build_csv_export(survey, responses)

    # -- workflows ---------------------------------------------------------

    def require_survey(self, survey_id: str) -> dict[str, Any]:
        survey = self.surveys.get(survey_id)
        if survey is None:
            raise NotFound(f"Survey {survey_id} not found")
        return survey

    def _require_creator(self, survey: dict[str, Any], user_id: str, action: str) -> None:
        if str(survey.get("createdBy")) != str(user_id):
            raise Forbidden(f"Only the survey creator can {action}")

    def create_from_text(self, user_id: str, payload: CreateSurveyRequest) -> dict[str, Any]:
        questions = self.parse_questions(payload.questions_text, payload.options_text)
        if not questions:
            raise MalformedInput("at least one question is required")
        survey = self.create_survey(
            SurveySpec(
                title=payload.title.strip(),
                questions=questions,
                created_by=user_id,
                settings=payload.settings,
            )
        )
        self.add_survey_to_user_index(user_id, survey["id"])
        return survey

    def submit_response(self, survey_id: str, user_id: str, answers: dict[str, Any]) -> tuple[dict[str, Any], int]:
        """Store one anonymous response per user.

        The user's digest is claimed before the response is written, so two
        concurrent submissions from the same user cannot both get through on a
        conditional store. If the append then fails the claim is released.
        """
        survey = self.require_survey(survey_id)
        if not accepts_responses(str(survey.get("status"))):
            raise SurveyClosed("This survey is closed and no longer accepting responses")
        cleaned = validate_submission(survey.get("questions") or [], answers)
        if self.tracking.has_responded(survey_id, user_id):
            raise AlreadyResponded("You've already submitted a response")
        if not self.tracking.mark_responded(survey_id, user_id):
            raise AlreadyResponded("You've already submitted a response")
        try:
            count = self.responses.append(survey_id, cleaned)
        except StorageError:
            logger.error("[SUBMIT] append failed survey=%s, releasing claim", survey_id)
            try:
                self.tracking.release(survey_id, user_id)
            except StorageError as release_exc:
                logger.error("[SUBMIT] could not release claim survey=%s: %s", survey_id, release_exc.detail)
            raise
        logger.info("[SUBMIT] survey=%s response_count=%s", survey_id, count)
        return survey, count

    def close_as(self, survey_id: str, user_id: str) -> dict[str, Any]:
        survey = self.require_survey(survey_id)
        self._require_creator(survey, user_id, "close a survey")
        if survey.get("status") == CLOSED:
            raise AlreadyClosed(f"Survey {survey_id} is already closed")
        closed = self.close_survey(survey_id)
        if closed is None:
            raise NotFound(f"Survey {survey_id} not found")
        return self._resynced(survey_id) or closed

    def _resynced(self, survey_id: str) -> dict[str, Any] | None:
        try:
            return self.responses.resync_count(survey_id)
        except StorageError as exc:
            logger.warning("[RESPONSES] count resync skipped survey=%s: %s", survey_id, exc.detail)
            return None

    def results_for(self, survey_id: str, user_id: str | None) -> dict[str, Any]:
        survey = self._resynced(survey_id)
        if survey is None:
            survey = self.require_survey(survey_id)
        viewer = ViewerContext(is_admin=bool(user_id) and str(user_id) == str(survey.get("createdBy")))
        return self.build_results_data(survey, self.get_responses(survey_id), viewer)

    def share_results(self, survey_id: str) -> dict[str, Any]:
        survey = self.require_survey(survey_id)
        return self.build_results_data(survey, self.get_responses(survey_id), ViewerContext(is_share=True))

    def respondent_results(self, survey: dict[str, Any]) -> dict[str, Any] | None:
        if not (survey.get("settings") or {}).get("showResults"):
            return None
        return self.build_results_data(survey, self.get_responses(str(survey["id"])), ViewerContext())

    def export_csv_as(self, survey_id: str, user_id: str) -> tuple[dict[str, Any], str]:
        survey = self.require_survey(survey_id)
        self._require_creator(survey, user_id, "export results")
        return survey, self.build_csv_export(survey, self.get_responses(survey_id))
