import threading
import time

import pytest

import pulse.blob_store as blob_store
from pulse.blob_store import InMemoryBlobStore
from pulse.errors import (
    AlreadyClosed,
    AlreadyResponded,
    Forbidden,
    InvalidAnswer,
    MalformedInput,
    NotFound,
    StorageUnavailable,
    SurveyClosed,
)
from pulse.schemas import CreateSurveyRequest, SurveySettings
from pulse.services.survey_service import SurveyService


class _SlowStore(InMemoryBlobStore):
    """Widens the gap between read and write so threads interleave."""

    def get(self, namespace, key):
        blob = super().get(namespace, key)
        time.sleep(0.001)
        return blob


def _service(store=None, **settings):
    service = SurveyService(store or InMemoryBlobStore(), "test-secret")
    survey = service.create_from_text(
        "U_CREATOR",
        CreateSurveyRequest(
            title="  Team pulse  ",
            questions_text="Rate it\nPick (multi-select)\nTell us (free-text)",
            options_text="Q2: A, B, C",
            settings=SurveySettings(**settings),
        ),
    )
    return service, survey


def test_create_from_text_indexes_the_creator():
    service, survey = _service()
    assert survey["title"] == "Team pulse"
    assert [q["type"] for q in survey["questions"]] == ["scale", "multi-select", "free-text"]
    assert [s["id"] for s in service.get_user_surveys("U_CREATOR")] == [survey["id"]]


def test_create_requires_a_question():
    service = SurveyService(InMemoryBlobStore(), "test-secret")
    with pytest.raises(MalformedInput):
        service.create_from_text("U1", CreateSurveyRequest(title="T", questions_text="  \n  "))


def test_submit_records_response_and_marks_user():
    service, survey = _service()
    _, count = service.submit_response(survey["id"], "U1", {"q_0": 4, "q_1": ["B", "A", "B"], "q_2": "  fine  "})

    assert count == 1
    assert service.get_responses(survey["id"]) == [{"q_0": 4, "q_1": ["B", "A"], "q_2": "fine"}]
    assert service.has_user_responded(survey["id"], "U1") is True
    assert service.get_survey(survey["id"])["responseCount"] == 1


def test_second_submission_is_rejected():
    service, survey = _service()
    service.submit_response(survey["id"], "U1", {"q_0": 4})
    with pytest.raises(AlreadyResponded):
        service.submit_response(survey["id"], "U1", {"q_0": 2})
    assert service.get_responses(survey["id"]) == [{"q_0": 4}]


def test_submit_to_missing_or_closed_survey():
    service, survey = _service()
    with pytest.raises(NotFound):
        service.submit_response("nope", "U1", {"q_0": 4})

    service.close_as(survey["id"], "U_CREATOR")
    with pytest.raises(SurveyClosed):
        service.submit_response(survey["id"], "U1", {"q_0": 4})
    assert service.has_user_responded(survey["id"], "U1") is False


@pytest.mark.parametrize(
    "answers,field",
    [
        ({"q_0": 6}, "q_0"),
        ({"q_0": 2.5}, "q_0"),
        ({"q_0": "great"}, "q_0"),
        ({"q_1": ["Z"]}, "q_1"),
        ({"q_1": "A"}, "q_1"),
        ({"q_2": 42}, "q_2"),
        ({"q_2": "x" * 3001}, "q_2"),
    ],
)
def test_invalid_answers_are_rejected_without_claiming(answers, field):
    service, survey = _service()
    with pytest.raises(InvalidAnswer) as exc_info:
        service.submit_response(survey["id"], "U1", answers)
    assert exc_info.value.field == field
    assert service.has_user_responded(survey["id"], "U1") is False


def test_empty_submission_is_still_one_response():
    service, survey = _service()
    _, count = service.submit_response(survey["id"], "U1", {"q_0": None, "q_1": [], "q_2": "   ", "extra": 1})
    assert count == 1
    assert service.get_responses(survey["id"]) == [{}]


class _AppendFails(InMemoryBlobStore):
    def set_if_version(self, namespace, key, value, expected_version):
        if namespace == "pulse-responses":
            raise StorageUnavailable("responses unavailable")
        return super().set_if_version(namespace, key, value, expected_version)


def test_failed_append_releases_the_claim():
    service, survey = _service(_AppendFails())
    with pytest.raises(StorageUnavailable):
        service.submit_response(survey["id"], "U1", {"q_0": 3})
    assert service.has_user_responded(survey["id"], "U1") is False
    assert service.get_responses(survey["id"]) == []


def test_concurrent_submissions_from_distinct_users_are_all_kept(monkeypatch):
    monkeypatch.setattr(blob_store, "STORE_MAX_ATTEMPTS", 200)
    service, survey = _service(_SlowStore())
    errors = []

    def submit(i):
        try:
            service.submit_response(survey["id"], f"U{i}", {"q_0": (i % 5) + 1})
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(service.get_responses(survey["id"])) == 20
    assert all(service.has_user_responded(survey["id"], f"U{i}") for i in range(20))
    assert service.results_for(survey["id"], "U_CREATOR")["response_count"] == 20
    assert service.get_survey(survey["id"])["responseCount"] == 20


def test_concurrent_submissions_from_one_user_store_one_response(monkeypatch):
    monkeypatch.setattr(blob_store, "STORE_MAX_ATTEMPTS", 200)
    service, survey = _service(_SlowStore())
    outcomes = []
    barrier = threading.Barrier(8)

    def submit():
        barrier.wait()
        try:
            service.submit_response(survey["id"], "U_SAME", {"q_0": 5})
            outcomes.append("ok")
        except AlreadyResponded:
            outcomes.append("dup")

    threads = [threading.Thread(target=submit) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("dup") == 7
    assert service.get_responses(survey["id"]) == [{"q_0": 5}]


def test_close_requires_creator_and_happens_once():
    service, survey = _service()
    with pytest.raises(Forbidden):
        service.close_as(survey["id"], "U_OTHER")

    closed = service.close_as(survey["id"], "U_CREATOR")
    assert closed["status"] == "closed"
    with pytest.raises(AlreadyClosed):
        service.close_as(survey["id"], "U_CREATOR")
    with pytest.raises(NotFound):
        service.close_as("nope", "U_CREATOR")


def test_results_viewer_roles():
    service, survey = _service()
    service.submit_response(survey["id"], "U1", {"q_2": "private note"})

    as_creator = service.results_for(survey["id"], "U_CREATOR")["questions"][2]
    as_other = service.results_for(survey["id"], "U1")["questions"][2]
    anonymous = service.results_for(survey["id"], None)["questions"][2]
    shared = service.share_results(survey["id"])["questions"][2]

    assert as_creator["texts"] == ["private note"]
    assert as_other["texts"] == []
    assert anonymous["texts"] == []
    assert shared["texts"] == []
    with pytest.raises(NotFound):
        service.results_for("nope", None)


def test_respondent_results_follow_show_results():
    service, survey = _service(show_results=False)
    assert service.respondent_results(survey) is None

    service, survey = _service(show_results=True)
    service.submit_response(survey["id"], "U1", {"q_0": 2})
    results = service.respondent_results(survey)
    assert results["response_count"] == 1


def test_export_is_creator_only():
    service, survey = _service()
    service.submit_response(survey["id"], "U1", {"q_0": 2, "q_1": ["A", "C"]})

    with pytest.raises(Forbidden):
        service.export_csv_as(survey["id"], "U1")
    _, text = service.export_csv_as(survey["id"], "U_CREATOR")
    assert text == 'Rate it,Pick,Tell us\n2,"A, C",'


class _SurveyWritesFail(InMemoryBlobStore):
    def __init__(self):
        super().__init__()
        self.armed = False

    def set_if_version(self, namespace, key, value, expected_version):
        if self.armed and namespace == "pulse-surveys":
            raise StorageUnavailable("survey writes unavailable")
        return super().set_if_version(namespace, key, value, expected_version)


def test_results_survive_a_failed_count_resync():
    store = _SurveyWritesFail()
    service, survey = _service(store)
    store.armed = True

    _, count = service.submit_response(survey["id"], "U1", {"q_0": 4})
    assert count == 1
    assert service.get_survey(survey["id"])["responseCount"] == 0

    data = service.results_for(survey["id"], "U_CREATOR")
    assert data["response_count"] == 1
    assert data["questions"][0]["average"] == 4


def test_close_succeeds_when_count_resync_fails(monkeypatch):
    service, survey = _service()
    service.submit_response(survey["id"], "U1", {"q_0": 4})

    def _fail(survey_id):
        raise StorageUnavailable("survey writes unavailable")

    monkeypatch.setattr(service.responses, "resync_count", _fail)
    closed = service.close_as(survey["id"], "U_CREATOR")
    assert closed["status"] == "closed"


class _AppendAndReleaseFail(InMemoryBlobStore):
    def __init__(self):
        super().__init__()
        self.tracking_writes = 0

    def set_if_version(self, namespace, key, value, expected_version):
        if namespace == "pulse-responses":
            raise StorageUnavailable("responses unavailable")
        if namespace == "pulse-tracking":
            self.tracking_writes += 1
            if self.tracking_writes > 1:
                raise StorageUnavailable("tracking unavailable")
        return super().set_if_version(namespace, key, value, expected_version)


def test_failed_release_keeps_the_append_error():
    service, survey = _service(_AppendAndReleaseFail())
    with pytest.raises(StorageUnavailable) as exc_info:
        service.submit_response(survey["id"], "U1", {"q_0": 3})
    assert exc_info.value.detail == "responses unavailable"
