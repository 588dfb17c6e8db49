"""Tests for the registry tag client."""
from unittest.mock import MagicMock

import pytest
import requests

from compman.core.errors import RegistryUnavailable
from compman.services.registry import DOCKER_HUB_API, RegistryTagClient, split_registry


def _response(status=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def _client(session, **kwargs):
    kwargs.setdefault("retry_delay", 0)
    return RegistryTagClient(session=session, **kwargs)


class TestSplitRegistry:
    """Test registry/repository splitting."""

    @pytest.mark.parametrize("image,expected", [
        ("nginx", ("docker.io", "library/nginx")),
        ("nginx:1.25", ("docker.io", "library/nginx")),
        ("grafana/grafana", ("docker.io", "grafana/grafana")),
        ("grafana/grafana:10.0.0", ("docker.io", "grafana/grafana")),
        ("ghcr.io/org/app", ("ghcr.io", "org/app")),
        ("localhost:5000/app", ("localhost:5000", "app")),
        ("registry.example.com/team/sub/app:1.0", ("registry.example.com", "team/sub/app")),
        ("docker.io/library/redis", ("docker.io", "library/redis")),
        ("docker.io/redis", ("docker.io", "library/redis")),
        ("org/team/app", ("org", "team/app")),
    ])
    def test_split(self, image, expected):
        assert split_registry(image) == expected


class TestDockerHubTags:
    """Test tag listing against Docker Hub."""

    def test_collects_tag_names(self):
        session = MagicMock()
        session.get.return_value = _response(payload={
            "results": [{"name": "1.25.0", "images": []}, {"name": "latest"}, {"images": []}],
            "next": None,
        })

        tags = _client(session).get_tags("nginx")

        assert tags == ["1.25.0", "latest"]
        url = session.get.call_args[0][0]
        assert url == f"{DOCKER_HUB_API}/library/nginx/tags/"
        assert session.get.call_args[1]["params"] == {"page_size": 100}

    def test_empty_result_reports_latest(self):
        session = MagicMock()
        session.get.return_value = _response(payload={"results": [], "next": None})

        assert _client(session).get_tags("grafana/grafana") == ["latest"]

    def test_follows_next_up_to_max_pages(self):
        session = MagicMock()
        session.get.side_effect = [
            _response(payload={"results": [{"name": "1"}], "next": "https://next/page2"}),
            _response(payload={"results": [{"name": "2"}], "next": "https://next/page3"}),
        ]

        tags = _client(session, max_pages=2).get_tags("nginx")

        assert tags == ["1", "2"]
        assert session.get.call_count == 2
        assert session.get.call_args_list[1][0][0] == "https://next/page2"

    def test_single_page_by_default(self):
        session = MagicMock()
        session.get.return_value = _response(
            payload={"results": [{"name": "1"}], "next": "https://next/page2"}
        )

        _client(session).get_tags("nginx")

        assert session.get.call_count == 1

    def test_non_2xx_surfaces_status_and_body(self):
        session = MagicMock()
        session.get.return_value = _response(status=404, text='{"message": "not found"}')

        with pytest.raises(RegistryUnavailable) as excinfo:
            _client(session).get_tags("nosuch/image")

        assert excinfo.value.status_code == 404
        assert "not found" in excinfo.value.body
        assert "HTTP 404" in str(excinfo.value)

    def test_invalid_json(self):
        session = MagicMock()
        session.get.return_value = _response(payload=ValueError("bad json"), text="<html>")

        with pytest.raises(RegistryUnavailable):
            _client(session).get_tags("nginx")

    def test_transport_errors_are_retried(self):
        session = MagicMock()
        session.get.side_effect = [
            requests.ConnectionError("reset"),
            _response(payload={"results": [{"name": "1.0"}], "next": None}),
        ]

        assert _client(session).get_tags("nginx") == ["1.0"]
        assert session.get.call_count == 2

    def test_transport_failure_after_retries(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("slow")

        with pytest.raises(RegistryUnavailable):
            _client(session, max_attempts=2).get_tags("nginx")
        assert session.get.call_count == 2

    def test_no_cache_between_calls(self):
        session = MagicMock()
        session.get.return_value = _response(payload={"results": [{"name": "1.0"}], "next": None})
        client = _client(session)

        client.get_tags("nginx")
        client.get_tags("nginx")

        assert session.get.call_count == 2


class TestCustomRegistry:
    """Test the fallback for registries other than Docker Hub."""

    def test_falls_back_to_latest_without_network(self):
        session = MagicMock()

        assert _client(session).get_tags("ghcr.io/org/app:1.0") == ["latest"]
        session.get.assert_not_called()

    def test_repository_exists(self):
        assert _client(MagicMock()).repository_exists("ghcr.io/org/app")
