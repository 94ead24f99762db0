from typing import Any, Literal

from pydantic import BaseModel, Field

QuestionType = Literal["scale", "multi-select", "free-text"]

SCALE = "scale"
MULTI_SELECT = "multi-select"
FREE_TEXT = "free-text"


class Question(BaseModel):
    label: str
    type: QuestionType = SCALE
    options: list[str] | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class SurveySettings(BaseModel):
    show_results: bool = False
    share_freetext: bool = False

    def to_record(self) -> dict[str, bool]:
        return {"showResults": self.show_results, "shareFreetext": self.share_freetext}


class SurveySpec(BaseModel):
    title: str
    questions: list[Question]
    created_by: str
    settings: SurveySettings = Field(default_factory=SurveySettings)


class ViewerContext(BaseModel):
    is_admin: bool = False
    is_share: bool = False


class CreateSurveyRequest(BaseModel):
    title: str = Field(min_length=1, max_length=150)
    questions_text: str = Field(min_length=1)
    options_text: str = ""
    settings: SurveySettings = Field(default_factory=SurveySettings)


class SubmitResponseRequest(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)


class SubmitResponseResult(BaseModel):
    status: str
    response_count: int
    results: dict[str, Any] | None = None
