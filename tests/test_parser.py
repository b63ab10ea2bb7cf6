"""Tests for compose2k8s parser and normalization."""

import pytest
import yaml

from compose2k8s.errors import ComposeParseError, ComposeValidationError, PortSpecError
from compose2k8s.normalize import (
    load_env_files,
    normalize_depends_on,
    normalize_environment,
    normalize_labels,
    normalize_networks,
)
from compose2k8s.parser import (
    find_compose_file,
    load_yaml_document,
    parse_compose_data,
    parse_compose_file,
)
from compose2k8s.types import MountType


@pytest.fixture
def docker_compose_content():
    """Sample docker-compose.yaml content."""
    return {
        "version": "3.8",
        "services": {
            "web": {
                "image": "nginx:${NGINX_TAG:-alpine}",
                "ports": ["80:80"],
                "depends_on": ["api"],
            },
            "api": {
                "build": ".",
                "ports": ["8080:8080"],
                "environment": {"DATABASE_URL": "postgres://db:5432/app", "DEBUG": True},
                "depends_on": {"db": {"condition": "service_healthy"}},
            },
            "db": {
                "image": "postgres:15",
                "volumes": ["db-data:/var/lib/postgresql/data"],
                "environment": ["POSTGRES_PASSWORD=secret", "POSTGRES_DB"],
            },
        },
        "volumes": {
            "db-data": None,
        },
    }


@pytest.fixture
def temp_compose_dir(docker_compose_content, tmp_path):
    """Create temporary directory with docker-compose.yaml."""
    compose_dir = tmp_path / "project"
    compose_dir.mkdir()

    compose_file = compose_dir / "docker-compose.yaml"
    with open(compose_file, "w") as f:
        yaml.dump(docker_compose_content, f, sort_keys=False)

    return compose_dir


class TestFindComposeFile:
    def test_prefers_compose_yaml(self, tmp_path):
        (tmp_path / "docker-compose.yml").write_text("services: {}")
        (tmp_path / "compose.yaml").write_text("services: {}")

        assert find_compose_file(tmp_path) == tmp_path / "compose.yaml"

    def test_yml_extension(self, tmp_path):
        (tmp_path / "docker-compose.yml").write_text("services: {}")
        assert find_compose_file(tmp_path) == tmp_path / "docker-compose.yml"

    def test_not_found(self, tmp_path):
        assert find_compose_file(tmp_path) is None


class TestParseComposeFile:
    def test_parse_project(self, temp_compose_dir):
        result = parse_compose_file(temp_compose_dir / "docker-compose.yaml", environ={})
        project = result.project

        assert list(project.services) == ["web", "api", "db"]
        assert list(project.volumes) == ["db-data"]
        assert project.version == "3.8"
        assert result.warnings == []

    def test_service_properties(self, temp_compose_dir):
        result = parse_compose_file(temp_compose_dir / "docker-compose.yaml", environ={})
        services = result.project.services

        web = services["web"]
        assert web.image == "nginx:alpine"
        assert web.ports[0].target == 80
        assert web.depends_on == {"api": "service_started"}

        api = services["api"]
        assert api.build == {"context": "."}
        assert api.environment == {
            "DATABASE_URL": "postgres://db:5432/app",
            "DEBUG": "true",
        }
        assert api.depends_on == {"db": "service_healthy"}

        db = services["db"]
        assert db.volumes[0].type == MountType.VOLUME
        assert db.volumes[0].source == "db-data"
        assert db.environment == {"POSTGRES_PASSWORD": "secret", "POSTGRES_DB": ""}

    def test_environ_interpolation(self, temp_compose_dir):
        result = parse_compose_file(
            temp_compose_dir / "docker-compose.yaml",
            environ={"NGINX_TAG": "1.27"},
        )
        assert result.project.services["web"].image == "nginx:1.27"

    def test_dotenv_overrides_environ(self, temp_compose_dir):
        (temp_compose_dir / ".env").write_text("NGINX_TAG=from-dotenv\n")
        result = parse_compose_file(
            temp_compose_dir / "docker-compose.yaml",
            environ={"NGINX_TAG": "from-environ"},
        )
        assert result.project.services["web"].image == "nginx:from-dotenv"

    def test_explicit_env_file(self, temp_compose_dir, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("NGINX_TAG=custom\n")
        result = parse_compose_file(
            temp_compose_dir / "docker-compose.yaml", env_file=env_file, environ={}
        )
        assert result.project.services["web"].image == "nginx:custom"

    def test_missing_explicit_env_file(self, temp_compose_dir, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_compose_file(
                temp_compose_dir / "docker-compose.yaml",
                env_file=tmp_path / "nope.env",
                environ={},
            )

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_compose_file(tmp_path / "docker-compose.yaml")

    def test_malformed_yaml(self, tmp_path):
        compose = tmp_path / "compose.yaml"
        compose.write_text("services:\n  web: [unclosed\n")
        with pytest.raises(ComposeParseError, match="Failed to parse YAML"):
            parse_compose_file(compose, environ={})


class TestParseComposeData:
    def test_non_object_document(self):
        with pytest.raises(ComposeParseError, match="valid YAML object"):
            load_yaml_document("- a\n- b\n", "list.yaml")

    def test_schema_errors_list_every_path(self):
        raw = {
            "services": {
                "web": {"image": 42, "ports": [{"published": 80}]},
                "db": {"depends_on": {"web": {"condition": "sometimes"}}},
            },
        }
        with pytest.raises(ComposeValidationError) as exc_info:
            parse_compose_data(raw, source="compose.yaml")

        errors = exc_info.value.errors
        assert any(e.startswith("services.web.image") for e in errors)
        assert any(e.startswith("services.web.ports.0") for e in errors)
        assert any(e.startswith("services.db.depends_on") for e in errors)
        assert "compose.yaml" in str(exc_info.value)

    def test_missing_services(self):
        with pytest.raises(ComposeValidationError, match="services"):
            parse_compose_data({"volumes": {}})

    def test_bad_port_is_hard_failure(self):
        with pytest.raises(PortSpecError):
            parse_compose_data({"services": {"web": {"image": "nginx", "ports": ["99999:80"]}}})

    def test_interpolation_before_validation(self):
        raw = {"services": {"web": {"image": "nginx", "ports": ["${PORT}:80"]}}}
        result = parse_compose_data(raw, env={"PORT": "8080"})
        assert result.project.services["web"].ports[0].published == 8080

    def test_network_config_warning(self):
        raw = {
            "services": {
                "web": {
                    "image": "nginx",
                    "networks": {"front": {"aliases": ["www"]}, "back": None},
                },
            },
        }
        result = parse_compose_data(raw)
        assert result.project.services["web"].networks == ("front", "back")
        assert len(result.warnings) == 1
        assert "front" in result.warnings[0]


class TestNormalizeFields:
    def test_environment_list(self):
        assert normalize_environment(["A=1", "B=x=y", "C"]) == {"A": "1", "B": "x=y", "C": ""}

    def test_environment_mapping(self):
        assert normalize_environment({"A": 1, "B": None, "C": False}) == {
            "A": "1",
            "B": "",
            "C": "false",
        }

    def test_labels(self):
        assert normalize_labels(["tier=web"]) == {"tier": "web"}
        assert normalize_labels({"replicas": 2}) == {"replicas": "2"}

    def test_depends_on(self):
        assert normalize_depends_on(["a", "b"]) == {"a": "service_started", "b": "service_started"}
        assert normalize_depends_on({"a": {}}) == {"a": "service_started"}
        assert normalize_depends_on(None) == {}

    def test_networks_list(self):
        assert normalize_networks("web", ["a", "b"]) == (("a", "b"), [])


class TestEnvFiles:
    def test_loaded_and_overridden(self, tmp_path):
        (tmp_path / "app.env").write_text("A=from-file\nB=from-file\n")
        raw = {
            "services": {
                "app": {
                    "image": "app",
                    "env_file": "app.env",
                    "environment": {"B": "explicit"},
                },
            },
        }
        result = parse_compose_data(raw, base_dir=tmp_path)
        assert result.project.services["app"].environment == {"A": "from-file", "B": "explicit"}

    def test_later_file_wins(self, tmp_path):
        (tmp_path / "a.env").write_text("X=a\n")
        (tmp_path / "b.env").write_text("X=b\n")
        env, warnings = load_env_files("app", ["a.env", "b.env"], tmp_path)
        assert env == {"X": "b"}
        assert warnings == []

    def test_missing_required_warns(self, tmp_path):
        env, warnings = load_env_files("app", "missing.env", tmp_path)
        assert env == {}
        assert len(warnings) == 1
        assert "missing.env" in warnings[0]

    def test_missing_optional_silent(self, tmp_path):
        env, warnings = load_env_files("app", [{"path": "missing.env", "required": False}], tmp_path)
        assert env == {}
        assert warnings == []

    def test_traversal_rejected(self, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        (tmp_path / "outside.env").write_text("SECRET=x\n")

        env, warnings = load_env_files("app", "../outside.env", project)
        assert env == {}
        assert "escapes" in warnings[0]
