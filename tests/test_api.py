"""Unit tests for the Kubernetes API client."""

import json

import httpx
import pytest

from kubersync.api import KubeClient
from kubersync.config import ClusterConfig
from kubersync.exceptions import (
    KubeAPIError,
    KubeAuthenticationError,
    KubeConflictError,
    KubeGoneError,
    KubeInvalidResponseError,
    KubeNetworkError,
    KubeNotFoundError,
    KubePermissionError,
)
from kubersync.models import Secret

SECRET_JSON = {
    "apiVersion": "v1",
    "kind": "Secret",
    "metadata": {"name": "app", "namespace": "default", "resourceVersion": "7"},
    "data": {"a": "MQ=="},
}

LIST_JSON = {
    "kind": "SecretList",
    "metadata": {"resourceVersion": "7"},
    "items": [SECRET_JSON],
}


def _client(handler, **kwargs):
    config = ClusterConfig(server="https://k8s.example.com", token="tok")
    kwargs.setdefault("retry_delay", 0)
    return KubeClient(config, transport=httpx.MockTransport(handler), **kwargs)


def _status(code, message):
    return httpx.Response(
        code, json={"kind": "Status", "code": code, "message": message}
    )


class TestKubeClient:
    """Tests for client construction."""

    def test_init(self):
        config = ClusterConfig(server="https://k8s.example.com")
        client = KubeClient(config)
        assert client.config is config
        assert client.max_retries == 3

    def test_auth_header_sent(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=LIST_JSON)

        _client(handler).list_secrets("default")
        assert seen["auth"] == "Bearer tok"

    def test_close(self):
        client = _client(lambda request: httpx.Response(200, json=LIST_JSON))
        client.list_secrets("default")
        client.close()
        assert client._client is None

    def test_close_removes_materialized_credentials(self, tmp_path):
        key_file = tmp_path / "client.key"
        key_file.write_text("secret key")
        config = ClusterConfig(
            server="https://k8s.example.com", temp_files=[str(key_file)]
        )
        client = KubeClient(
            config,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=LIST_JSON)),
        )

        client.close()

        assert not key_file.exists()
        assert config.temp_files == []


class TestRequests:
    """Tests for status mapping and retries."""

    @pytest.mark.parametrize(
        "code,error",
        [
            (401, KubeAuthenticationError),
            (403, KubePermissionError),
            (404, KubeNotFoundError),
            (409, KubeConflictError),
            (410, KubeGoneError),
        ],
    )
    def test_status_mapping(self, code, error):
        client = _client(lambda request: _status(code, "nope"))
        with pytest.raises(error, match="nope"):
            client.list_secrets("default")

    def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return _status(503, "busy")
            return httpx.Response(200, json=LIST_JSON)

        items, _ = _client(handler).list_secrets("default")

        assert [s.name for s in items] == ["app"]
        assert len(calls) == 3

    def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _status(500, "broken")

        with pytest.raises(KubeAPIError, match="status 500"):
            _client(handler, max_retries=2).list_secrets("default")
        assert len(calls) == 3

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(KubeNetworkError):
            _client(handler, max_retries=0).list_secrets("default")

    def test_undecodable_data(self):
        item = dict(SECRET_JSON, data={"a": "!!notbase64"})
        client = _client(
            lambda request: httpx.Response(200, json=dict(LIST_JSON, items=[item]))
        )
        with pytest.raises(KubeInvalidResponseError):
            client.list_secrets("default")


class TestListSecrets:
    """Tests for listing secrets."""

    def test_list_with_field_selector(self):
        def handler(request):
            assert request.url.params["fieldSelector"] == "metadata.name=app"
            item = dict(SECRET_JSON)
            item["metadata"] = {"name": "app", "resourceVersion": "7"}
            return httpx.Response(
                200,
                json={"kind": "SecretList", "metadata": {"resourceVersion": "99"}, "items": [item]},
            )

        items, version = _client(handler).list_secrets(
            "default", field_selector="metadata.name=app"
        )

        assert version == "99"
        assert [s.key for s in items] == ["default/app"]

    def test_list_empty(self):
        client = _client(
            lambda request: httpx.Response(200, json={"metadata": {"resourceVersion": "1"}})
        )
        assert client.list_secrets("default") == ([], "1")


class TestReplaceSecret:
    """Tests for writing a secret back."""

    def test_replace_puts_full_object(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            body = dict(seen["body"])
            body["metadata"] = dict(body["metadata"], resourceVersion="8")
            return httpx.Response(200, json=body)

        secret = Secret.from_dict(SECRET_JSON).with_data({"b": b"2"})
        stored = _client(handler).replace_secret(secret)

        assert seen["method"] == "PUT"
        assert seen["body"]["data"] == {"b": "Mg=="}
        assert seen["body"]["metadata"]["resourceVersion"] == "7"
        assert stored.resource_version == "8"
        assert stored.data == {"b": b"2"}

    def test_replace_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return _status(500, "boom")

        with pytest.raises(KubeAPIError):
            _client(handler).replace_secret(Secret.from_dict(SECRET_JSON))
        assert len(calls) == 1

    def test_replace_conflict(self):
        client = _client(lambda request: _status(409, "object has been modified"))
        with pytest.raises(KubeConflictError):
            client.replace_secret(Secret.from_dict(SECRET_JSON))


class TestWatchSecrets:
    """Tests for the streaming watch endpoint."""

    def test_watch_yields_events(self):
        def handler(request):
            assert request.url.params["watch"] == "true"
            assert request.url.params["resourceVersion"] == "5"
            lines = [
                {"type": "ADDED", "object": SECRET_JSON},
                {"type": "BOOKMARK", "object": {"metadata": {"resourceVersion": "9"}}},
            ]
            content = "\n".join(json.dumps(line) for line in lines) + "\n\n"
            return httpx.Response(200, content=content.encode())

        events = list(_client(handler).watch_secrets("default", "5"))

        assert [t for t, _ in events] == ["ADDED", "BOOKMARK"]
        assert events[0][1]["metadata"]["name"] == "app"

    def test_watch_gone(self):
        client = _client(lambda request: _status(410, "too old resource version"))
        with pytest.raises(KubeGoneError):
            list(client.watch_secrets("default", "1"))
