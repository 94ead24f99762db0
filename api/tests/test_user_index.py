from pulse.blob_store import InMemoryBlobStore
from pulse.survey_repo import SurveyRepository
from pulse.user_index_repo import UserSurveyIndex


def _index():
    store = InMemoryBlobStore()
    surveys = SurveyRepository(store)
    return store, surveys, UserSurveyIndex(store, surveys, max_workers=4)


def _put(store, surveys, survey_id, created_at):
    store.set(surveys.namespace, survey_id, {"id": survey_id, "title": survey_id, "createdAt": created_at})


def test_key_shares_survey_namespace():
    store, surveys, index = _index()
    index.add("U1", "S1")
    assert index.namespace == surveys.namespace
    assert store.get_json(surveys.namespace, "user_U1") == ["S1"]


def test_add_is_idempotent():
    _, _, index = _index()
    index.add("U1", "S1")
    index.add("U1", "S2")
    index.add("U1", "S1")
    assert index.survey_ids("U1") == ["S1", "S2"]
    assert index.survey_ids("U2") == []


def test_list_sorts_newest_first_and_drops_missing():
    store, surveys, index = _index()
    _put(store, surveys, "old", "2024-01-01T00:00:00+00:00")
    _put(store, surveys, "new", "2024-03-01T00:00:00+00:00")
    _put(store, surveys, "mid", "2024-02-01T00:00:00Z")
    for sid in ["old", "gone", "new", "mid"]:
        index.add("U1", sid)

    assert [s["id"] for s in index.list("U1")] == ["new", "mid", "old"]


def test_list_keeps_index_order_on_ties():
    store, surveys, index = _index()
    for sid in ["a", "b", "c"]:
        _put(store, surveys, sid, "2024-01-01T00:00:00+00:00")
        index.add("U1", sid)
    assert [s["id"] for s in index.list("U1")] == ["a", "b", "c"]


def test_list_empty_user():
    _, _, index = _index()
    assert index.list("nobody") == []
