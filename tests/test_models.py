"""Tests for image, compose and result models."""
import pytest

from compman.core.errors import ValidationFailed
from compman.models import (
    ComposeFile,
    ImageReference,
    Service,
    UpdateResult,
    format_size,
    summarize,
)
from compman.models.compose import BuildConfig
from compman.models.result import NOT_AVAILABLE

DIGEST = "sha256:" + "0123456789abcdef" * 4


class TestImageReference:
    """Test image reference parsing."""

    @pytest.mark.parametrize("ref,registry,repository,tag,digest", [
        ("nginx", None, "nginx", "latest", None),
        ("nginx:1.25", None, "nginx", "1.25", None),
        ("linuxserver/plex:1.40", None, "linuxserver/plex", "1.40", None),
        ("localhost:5000/app", "localhost:5000", "app", "latest", None),
        ("localhost:5000/app:2.0", "localhost:5000", "app", "2.0", None),
        ("ghcr.io/org/app:v1", "ghcr.io", "org/app", "v1", None),
        (f"ghcr.io/org/app@{DIGEST}", "ghcr.io", "org/app", None, DIGEST),
        (f"nginx:1.25@{DIGEST}", None, "nginx", "1.25", DIGEST),
    ])
    def test_parse(self, ref, registry, repository, tag, digest):
        parsed = ImageReference.parse(ref)
        assert parsed.registry == registry
        assert parsed.repository == repository
        assert parsed.tag == tag
        assert parsed.digest == digest

    def test_digest_has_no_mutable_tag(self):
        parsed = ImageReference.parse(f"redis@{DIGEST}")
        assert parsed.is_digest
        assert parsed.effective_tag == ""

    def test_with_tag_keeps_registry_and_drops_digest(self):
        assert ImageReference.parse("ghcr.io/org/app:1.0").with_tag("1.1") == "ghcr.io/org/app:1.1"
        assert ImageReference.parse(f"redis@{DIGEST}").with_tag("7") == "redis:7"

    def test_str_round_trips(self):
        for ref in ("nginx:1.25", "localhost:5000/app:2.0", f"nginx:1.25@{DIGEST}"):
            assert str(ImageReference.parse(ref)) == ref


class TestFormatSize:
    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (512, "512 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (3 * 1024 ** 3, "3.0 GB"),
    ])
    def test_units(self, size, expected):
        assert format_size(size) == expected


class TestComposeFile:
    """Test compose model helpers."""

    def _compose(self, path="/srv/media/docker-compose.yml"):
        return ComposeFile(file_path=path, services={
            "web": Service(name="web", image="nginx:1.25"),
            "worker": Service(name="worker", build=BuildConfig(context="./worker")),
            "blank": Service(name="blank", image="   "),
        })

    def test_image_services_skip_build_only(self):
        compose = self._compose()
        assert list(compose.image_services()) == ["web"]
        assert compose.images() == ["nginx:1.25"]
        assert compose.service_names() == ["web", "worker", "blank"]

    def test_paths(self):
        compose = self._compose()
        assert compose.directory == "/srv/media"
        assert compose.file_name == "docker-compose.yml"
        assert compose.uses_default_name
        assert compose.project_name == "media"
        assert not self._compose("/srv/media/stack.yml").uses_default_name


class TestUpdateResult:
    """Test result records and summaries."""

    def test_file_failure_record(self):
        error = ValidationFailed("missing")
        result = UpdateResult.file_failure("/srv/app/docker-compose.yml", error)

        assert result.service == "file: docker-compose.yml"
        assert result.old_image == result.new_image == NOT_AVAILABLE
        assert result.success is False
        assert result.failed
        assert result.error is error

    def test_file_skipped_record(self):
        result = UpdateResult.file_skipped("/srv/app/compose.yml")
        assert result.skipped and not result.failed

    def test_summarize(self):
        results = [
            UpdateResult("web", "a", "b", True),
            UpdateResult("db", "a", "a", False, skipped=True),
            UpdateResult.file_failure("/x/docker-compose.yml", ValidationFailed("gone")),
            UpdateResult("cache", "a", "b", True),
        ]
        summary = summarize(results)
        assert (summary.succeeded, summary.skipped, summary.failed) == (2, 1, 1)
        assert summary.total == 4
