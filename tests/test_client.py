import json

import httpx
import pytest

from tandemgraph.client import TandemClient
from tandemgraph.encoding import ElementFlags
from tandemgraph.errors import TandemApiError
from tandemgraph.resolver import resolve_facility


def _client(handler, token="tok"):
    return TandemClient(lambda: token, transport=httpx.MockTransport(handler))


def test_get_elements_posts_scan_request():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=["v1", {"k": "AAA"}, {"k": "BBB"}])

    with _client(handler) as client:
        elements = client.get_elements("urn:adsk.dtm:m1", ["AAA", "BBB"], ["n", "l"])

    assert seen["method"] == "POST"
    assert seen["path"] == "/api/v2/modeldata/urn:adsk.dtm:m1/scan"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {
        "families": ["n", "l"],
        "includeHistory": False,
        "skipArrays": True,
        "keys": ["AAA", "BBB"],
    }
    assert elements == [{"k": "AAA"}, {"k": "BBB"}]


def test_get_elements_without_keys_scans_whole_model():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=[])

    with _client(handler) as client:
        client.get_elements("urn:adsk.dtm:m1")

    assert "keys" not in bodies[0]
    assert bodies[0]["families"] == ["n"]


def test_token_is_requested_for_every_call():
    tokens = iter(["first", "second"])
    seen = []

    def handler(request):
        seen.append(request.headers["Authorization"])
        return httpx.Response(200, json={})

    client = TandemClient(lambda: next(tokens), transport=httpx.MockTransport(handler))
    client.get_facility("urn:adsk.dtt:f")
    client.get_model("urn:adsk.dtm:m")
    client.close()

    assert seen == ["Bearer first", "Bearer second"]


def test_metadata_paths():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json={})

    with _client(handler) as client:
        client.get_facility("F")
        client.get_facility_template("F")
        client.get_model("M")
        client.get_model_schema("M")

    assert paths == [
        "/api/v1/twins/F",
        "/api/v1/twins/F/inlinetemplate",
        "/api/v1/modeldata/M/model",
        "/api/v1/modeldata/M/schema",
    ]


def test_tagged_assets_require_custom_properties():
    payload = [{"k": "A", "z:x1": 1}, {"k": "B", "n:n": "plain"}, {"k": "C", "z:y": None}]

    with _client(lambda request: httpx.Response(200, json=payload)) as client:
        assets = client.get_tagged_assets("M")

    assert [a["k"] for a in assets] == ["A", "C"]


def test_levels_and_rooms_filter_on_element_flags():
    payload = [
        {"k": "L", "n:a": ElementFlags.Level},
        {"k": "R", "n:a": ElementFlags.Room},
        {"k": "S", "n:a": ElementFlags.Stream},
        {"k": "E", "n:a": ElementFlags.SimpleElement},
    ]

    with _client(lambda request: httpx.Response(200, json=payload)) as client:
        assert [e["k"] for e in client.get_levels("M")] == ["L"]
        assert [e["k"] for e in client.get_rooms("M")] == ["R"]
        assert [e["k"] for e in client.get_streams("M")] == ["S"]


def test_fetch_by_key_with_no_keys_makes_no_request():
    def handler(request):
        raise AssertionError("unexpected request")

    with _client(handler) as client:
        assert client.fetch_elements_by_key("M", [], ["n"]) == []


def test_http_errors_raise_api_error():
    def handler(request):
        return httpx.Response(403, json={"message": "forbidden"})

    with _client(handler) as client:
        with pytest.raises(TandemApiError) as info:
            client.get_facility("F")

    assert info.value.status_code == 403
    assert "forbidden" in str(info.value)


def test_network_errors_raise_api_error():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with _client(handler) as client:
        with pytest.raises(TandemApiError):
            client.get_model("M")


def test_end_to_end_resolution_over_http(keys):
    facility_id = keys.facility(0)
    model = keys.model(1)
    asset = {"k": keys.short(1), "n:n": "Pump", "z:a": 1, "l:r": keys.local_array(10)}
    room = {"k": keys.short(10), "n:n": "Plant", "l:l": keys.short(100)}
    level = {"k": keys.short(100), "n:n": "Ground"}
    scans = []

    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"links": [{"modelId": keys.model(0)}, {"modelId": model}]})
        body = json.loads(request.content)
        scans.append((request.url.path, body.get("keys")))
        if body.get("keys") is None:
            return httpx.Response(200, json=["v1", asset, {"k": keys.short(2), "n:n": "Wall"}])
        if body["keys"] == [keys.flagged(10)]:
            return httpx.Response(200, json=["v1", room])
        return httpx.Response(200, json=["v1", level])

    with _client(handler) as client:
        view = resolve_facility(client, facility_id, concurrency=2)

    levels = list(view.levels())
    assert [lvl["n:n"] for _, lvl in levels] == ["Ground"]
    rooms = list(view.rooms_by_level(levels[0].key))
    assert [r["n:n"] for _, r in rooms] == ["Plant"]
    assert [a["n:n"] for _, a in view.assets_by_room(rooms[0].key)] == ["Pump"]
    assert all(model in path for path, _ in scans)
