from pulse.blob_store import InMemoryBlobStore
from pulse.errors import StorageUnavailable
from pulse.response_repo import ResponseLedger
from pulse.schemas import Question, SurveySpec
from pulse.survey_repo import SurveyRepository


def _setup(store=None):
    store = store or InMemoryBlobStore()
    surveys = SurveyRepository(store)
    ledger = ResponseLedger(store, surveys)
    survey = surveys.create(SurveySpec(title="T", questions=[Question(label="Q")], created_by="U1"))
    return store, surveys, ledger, survey["id"]


def test_append_returns_new_count_and_updates_survey():
    _, surveys, ledger, sid = _setup()

    assert ledger.append(sid, {"q_0": 4}) == 1
    assert ledger.append(sid, {"q_0": 2}) == 2
    assert ledger.list(sid) == [{"q_0": 4}, {"q_0": 2}]
    assert ledger.count(sid) == 2
    assert surveys.get(sid)["responseCount"] == 2


def test_list_empty_for_unknown_survey():
    _, _, ledger, _ = _setup()
    assert ledger.list("missing") == []
    assert ledger.count("missing") == 0


def test_count_never_moves_backwards():
    _, surveys, ledger, sid = _setup()
    surveys.update(sid, {"responseCount": 10})
    ledger.append(sid, {"q_0": 1})
    assert surveys.get(sid)["responseCount"] == 10


def test_resync_count_uses_list_length():
    store, surveys, ledger, sid = _setup()
    store.set(ledger.namespace, sid, [{"q_0": 1}, {"q_0": 2}, {"q_0": 3}])
    assert surveys.get(sid)["responseCount"] == 0

    survey = ledger.resync_count(sid)
    assert survey["responseCount"] == 3
    assert surveys.get(sid)["responseCount"] == 3
    assert ledger.resync_count("missing") is None


class _CountWriteFails(InMemoryBlobStore):
    def __init__(self, fail_namespace):
        super().__init__()
        self.fail_namespace = fail_namespace
        self.armed = False

    def set_if_version(self, namespace, key, value, expected_version):
        if self.armed and namespace == self.fail_namespace:
            raise StorageUnavailable("survey write failed")
        return super().set_if_version(namespace, key, value, expected_version)


def test_count_failure_does_not_lose_the_response():
    store = _CountWriteFails("pulse-surveys")
    _, surveys, ledger, sid = _setup(store)
    store.armed = True

    assert ledger.append(sid, {"q_0": 5}) == 1
    assert ledger.list(sid) == [{"q_0": 5}]
    assert surveys.get(sid)["responseCount"] == 0

    store.armed = False
    assert ledger.resync_count(sid)["responseCount"] == 1
