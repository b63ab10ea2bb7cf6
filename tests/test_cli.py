"""End-to-end tests for the compose2k8s command line."""

import json

import pytest
import yaml

from compose2k8s.cli import create_parser, main, resolve_compose_path

COMPOSE = """
services:
  web:
    image: nginx:alpine
    ports:
      - "80:80"
    depends_on:
      - api
  api:
    image: acme/api:1.0
    ports:
      - "3000:3000"
    environment:
      API_TOKEN: abc
      LOG_LEVEL: info
    healthcheck:
      test: ["CMD-SHELL", "curl -f http://localhost:3000/health || exit 1"]
      interval: 10s
    depends_on:
      db:
        condition: service_healthy
      cache:
        condition: service_started
  db:
    image: postgres:16
    ports:
      - "5432"
    volumes:
      - pgdata:/var/lib/postgresql/data
    environment:
      POSTGRES_PASSWORD: ${DB_PASSWORD:-changeme}
  cache:
    image: redis:7
volumes:
  pgdata:
"""


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.delenv("DB_PASSWORD", raising=False)
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    (project_dir / "compose.yaml").write_text(COMPOSE)
    return project_dir


def load(path):
    return yaml.safe_load(path.read_text())


class TestParser:
    def test_subcommands(self):
        args = create_parser().parse_args(["-v", "convert", "-f", "x.yaml", "-n", "prod", "--format", "single-file"])
        assert args.verbose
        assert args.command == "convert"
        assert args.file == "x.yaml"
        assert args.namespace == "prod"
        assert args.format == "single-file"

    def test_resolve_directory(self, project):
        assert resolve_compose_path(str(project)) == project / "compose.yaml"

    def test_resolve_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            resolve_compose_path(str(tmp_path))


class TestConvert:
    def test_pipeline(self, project, tmp_path):
        out_dir = tmp_path / "out"
        code = main(["convert", "-f", str(project / "compose.yaml"), "-o", str(out_dir)])
        assert code == 0

        db = load(out_dir / "db-statefulset.yaml")
        assert db["kind"] == "StatefulSet"
        assert db["spec"]["volumeClaimTemplates"][0]["metadata"]["name"] == "db-data"
        headless = load(out_dir / "db-headless-service.yaml")
        assert headless["spec"]["clusterIP"] == "None"
        assert not (out_dir / "cache-headless-service.yaml").exists()

        api = load(out_dir / "api-deployment.yaml")
        pod = api["spec"]["template"]["spec"]
        assert [c["name"] for c in pod["initContainers"]] == ["wait-for-db", "wait-for-cache"]
        assert "redis-cli -h cache -p 6379 ping" in pod["initContainers"][1]["command"][2]
        container = pod["containers"][0]
        assert container["readinessProbe"]["httpGet"] == {"path": "/health", "port": 3000}
        assert container["livenessProbe"]["periodSeconds"] == 10

        assert load(out_dir / "web-deployment.yaml")["kind"] == "Deployment"
        assert load(out_dir / "cache-statefulset.yaml")["kind"] == "StatefulSet"
        assert load(out_dir / "api-secret.yaml")["stringData"] == {"API_TOKEN": "REPLACE_ME"}
        assert load(out_dir / "db-secret.yaml")["stringData"] == {"POSTGRES_PASSWORD": "REPLACE_ME"}
        assert '"api" waits for "cache"' in (out_dir / "README.md").read_text()
        assert (out_dir / "scripts" / "migrate-db.sh").exists()

    def test_generated_manifests_validate(self, project, tmp_path, capsys):
        out_dir = tmp_path / "out"
        main(["convert", "-f", str(project / "compose.yaml"), "-o", str(out_dir)])
        capsys.readouterr()

        assert main(["validate", str(out_dir)]) == 0
        assert "manifests are valid" in capsys.readouterr().out

    def test_stdout(self, project, capsys):
        code = main(["convert", "-f", str(project / "compose.yaml"), "--stdout", "-n", "shop"])
        assert code == 0

        docs = list(yaml.safe_load_all(capsys.readouterr().out))
        kinds = [d["kind"] for d in docs]
        assert "Deployment" in kinds
        assert "StatefulSet" in kinds
        assert all(d["metadata"]["namespace"] == "shop" for d in docs)

    def test_single_file(self, project, tmp_path):
        out_dir = tmp_path / "out"
        main(["convert", "-f", str(project / "compose.yaml"), "-o", str(out_dir), "--format", "single-file"])

        docs = list(yaml.safe_load_all((out_dir / "all-resources.yaml").read_text()))
        assert {d["metadata"]["name"] for d in docs} >= {"web", "api", "db", "cache"}

    def test_config_file_and_flags(self, project, tmp_path):
        config = tmp_path / "answers.yaml"
        config.write_text(
            "services: [web, api]\n"
            "initContainers: none\n"
            "deploy:\n"
            "  namespace: from-file\n"
            "  migrationScripts: false\n"
        )
        out_dir = tmp_path / "out"
        code = main([
            "convert", "-f", str(project / "compose.yaml"),
            "-c", str(config), "-o", str(out_dir), "-n", "from-flag",
        ])
        assert code == 0

        api = load(out_dir / "api-deployment.yaml")
        assert api["metadata"]["namespace"] == "from-flag"
        assert "initContainers" not in api["spec"]["template"]["spec"]
        assert not (out_dir / "db-statefulset.yaml").exists()
        assert not (out_dir / "scripts").exists()

    def test_missing_compose_file(self, tmp_path, capsys):
        assert main(["convert", "-f", str(tmp_path / "nope.yaml")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_compose(self, tmp_path, capsys):
        compose = tmp_path / "compose.yaml"
        compose.write_text("services:\n  web:\n    image: [nginx]\n")
        assert main(["convert", "-f", str(compose), "--stdout"]) == 1
        assert "services.web.image" in capsys.readouterr().err

    def test_invalid_config(self, project, tmp_path, capsys):
        config = tmp_path / "answers.yaml"
        config.write_text("initContainers: sometimes\n")
        assert main(["convert", "-f", str(project / "compose.yaml"), "-c", str(config), "--stdout"]) == 1
        assert "initContainers" in capsys.readouterr().err


class TestParseCommand:
    def test_json(self, project, capsys):
        assert main(["parse", str(project), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)

        names = [s["name"] for s in data["services"]]
        assert names == ["web", "api", "db", "cache"]
        assert data["volumes"] == ["pgdata"]
        assert data["warnings"] == []
        db = data["services"][2]
        assert db["environment"] == {"POSTGRES_PASSWORD": "changeme"}
        assert db["volumes"][0]["type"] == "volume"

    def test_text(self, project, capsys):
        assert main(["parse", str(project)]) == 0
        out = capsys.readouterr().out
        assert "Services: 4" in out
        assert "Depends on: db, cache" in out


class TestValidateCommand:
    def test_invalid_manifest(self, tmp_path, capsys):
        (tmp_path / "svc.yaml").write_text("apiVersion: v1\nkind: Service\n")
        assert main(["validate", str(tmp_path)]) == 1
        assert "metadata.name" in capsys.readouterr().err

    def test_missing_dir(self, tmp_path):
        assert main(["validate", str(tmp_path / "nope")]) == 1
