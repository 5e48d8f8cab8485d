import json
from unittest.mock import MagicMock

import pytest
import requests

from driftguard.desired.builtin import builtin_set_names, find_builtin
from driftguard.desired.provider import DesiredSetProvider
from driftguard.state.models import DesiredSetSource
from driftguard.utils.errors import ConflictError, NotFoundError, ParseError
from driftguard.utils.retry import RetryStrategy

from conftest import R1, R2, entry

REMOTE = "https://config.example.com/sets"


def _response(payload=None, status=200):
    response = MagicMock()
    response.status_code = status
    response.content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    if status >= 400:
        http_response = MagicMock(status_code=status)
        response.raise_for_status.side_effect = requests.HTTPError(response=http_response)
    return response


def _provider(config, session=None):
    return DesiredSetProvider(
        config,
        session=session or MagicMock(),
        retry_strategy=RetryStrategy(max_retries=2, sleep=lambda _: None),
    )


def test_builtin_set_resolves(config):
    desired = _provider(config).resolve("workflow-foundation")

    assert desired.source == DesiredSetSource.BUILTIN
    assert desired.name == "workflow-foundation"
    assert len(desired) == len(find_builtin("workflow-foundation")["records"])


def test_builtin_lookup_is_case_insensitive():
    assert find_builtin("Workflow-Foundation")["name"] == "workflow-foundation"
    assert find_builtin("nope") == {}
    assert "workflow-codedom-lockdown" in builtin_set_names()


def test_explicit_file_wins(config, desired_file):
    path = desired_file([R1, R2], name="workflow-foundation")

    desired = _provider(config).resolve("workflow-foundation", explicit_path=str(path))

    assert desired.source == DesiredSetSource.LOCAL_FILE
    assert desired.location == str(path)
    assert len(desired) == 2


def test_missing_explicit_file_falls_through(config, tmp_path):
    desired = _provider(config).resolve(
        "workflow-foundation", explicit_path=str(tmp_path / "missing.json")
    )

    assert desired.source == DesiredSetSource.BUILTIN


def test_malformed_explicit_file_stops_resolution(config, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ParseError, match="Malformed desired set"):
        _provider(config).resolve("workflow-foundation", explicit_path=str(path))


def test_unknown_field_is_rejected(config, desired_file):
    path = desired_file([dict(R1, Comment="typo")])

    with pytest.raises(ParseError, match="unknown field"):
        _provider(config).resolve("baseline", explicit_path=str(path))


def test_missing_document_key_is_rejected(config, tmp_path):
    path = tmp_path / "baseline.json"
    path.write_text(json.dumps({"records": [R1]}), encoding="utf-8")

    with pytest.raises(ParseError, match="name"):
        _provider(config).resolve("baseline", explicit_path=str(path))


def test_duplicate_desired_identity_conflicts(config, desired_file):
    path = desired_file([entry("Foo.Bar"), entry("foo.bar")])

    with pytest.raises(ConflictError):
        _provider(config).resolve("baseline", explicit_path=str(path))


def test_yaml_desired_file(config, tmp_path):
    path = tmp_path / "baseline.yaml"
    path.write_text(
        "name: baseline\n"
        "records:\n"
        "  - {Assembly: A, Namespace: N, TypeName: '*', Authorized: 'True'}\n",
        encoding="utf-8",
    )

    desired = _provider(config).resolve("baseline", explicit_path=str(path))

    assert desired.description == ""
    assert desired.records.records()[0].identity["TypeName"] == "*"


def test_unknown_set_is_not_found(config):
    with pytest.raises(NotFoundError, match="could not be resolved"):
        _provider(config).resolve("does-not-exist")


def test_remote_fetch_is_cached(config, tmp_path):
    session = MagicMock()
    session.get.return_value = _response({"name": "baseline", "records": [R1]})

    desired = _provider(config, session).resolve("baseline", remote_base=REMOTE + "/")

    assert desired.source == DesiredSetSource.REMOTE
    session.get.assert_called_once_with(f"{REMOTE}/baseline.json", timeout=10.0)
    assert (tmp_path / "cache" / "baseline.json").exists()


def test_remote_failure_uses_cache(config, tmp_path):
    cache = tmp_path / "cache"
    cache.mkdir()
    (cache / "baseline.json").write_text(
        json.dumps({"name": "baseline", "records": [R1, R2]}), encoding="utf-8"
    )
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection refused")

    desired = _provider(config, session).resolve("baseline", remote_base=REMOTE)

    assert desired.source == DesiredSetSource.CACHE
    assert len(desired) == 2
    assert session.get.call_count == 3


def test_remote_not_found_falls_back_to_builtin(config):
    session = MagicMock()
    session.get.return_value = _response(status=404)

    desired = _provider(config, session).resolve("workflow-foundation", remote_base=REMOTE)

    assert desired.source == DesiredSetSource.BUILTIN
    session.get.assert_called_once()


def test_remote_invalid_content_is_not_cached(config, tmp_path):
    session = MagicMock()
    session.get.return_value = _response({"name": "baseline", "records": [{"Namespace": "N"}]})

    with pytest.raises(ParseError):
        _provider(config, session).resolve("baseline", remote_base=REMOTE)

    assert not (tmp_path / "cache" / "baseline.json").exists()


def test_unreadable_cache_falls_through_to_builtin(config, tmp_path):
    # A directory in place of the cached file makes the read fail with an OSError
    (tmp_path / "cache" / "workflow-foundation.json").mkdir(parents=True)
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection refused")

    desired = _provider(config, session).resolve("workflow-foundation", remote_base=REMOTE)

    assert desired.source == DesiredSetSource.BUILTIN


def test_unreadable_cache_without_builtin_is_not_found(config, tmp_path):
    (tmp_path / "cache" / "baseline.json").mkdir(parents=True)
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(NotFoundError) as exc_info:
        _provider(config, session).resolve("baseline", remote_base=REMOTE)

    assert any(a.startswith("cache:") for a in exc_info.value.context.additional_info["attempts"])
