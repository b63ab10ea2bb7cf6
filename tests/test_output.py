"""Tests for YAML output, README and migration scripts."""

import os

import pytest
import yaml

from compose2k8s.config import Configuration, DeployOptions
from compose2k8s.migrations import find_dump_strategy, generate_migration_scripts
from compose2k8s.output import (
    manifest_to_yaml,
    manifests_to_multi_doc,
    order_manifest,
    validate_manifest_dir,
    write_output,
)
from compose2k8s.readme import generate_readme
from compose2k8s.types import (
    AnalysisResult,
    AnalyzedService,
    ComposeService,
    DependencyGraph,
    GeneratedManifest,
    GeneratorOutput,
    MigrationScript,
    ServiceCategory,
    WorkloadType,
)


@pytest.fixture
def config_map():
    return {
        "data": {"nginx.conf": "server {\n  listen 80;\n}\n"},
        "metadata": {"name": "web-conf", "labels": {"tier": "web"}},
        "kind": "ConfigMap",
        "apiVersion": "v1",
    }


@pytest.fixture
def output(config_map):
    return GeneratorOutput(
        manifests=[
            GeneratedManifest("web-conf.yaml", config_map, "web", "ConfigMap for web"),
            GeneratedManifest(
                "web-secret.yaml",
                {"apiVersion": "v1", "kind": "Secret", "metadata": {"name": "web-secret"},
                 "type": "Opaque", "stringData": {"TOKEN": "REPLACE_ME"}},
                "web",
                "Secret for web",
            ),
        ],
        migration_scripts=[
            MigrationScript("migrate-db.sh", "#!/usr/bin/env bash\necho hi\n", "db", "Copy data"),
        ],
        readme="# Kubernetes Manifests\n",
    )


def make_config(tmp_path, **deploy):
    return Configuration(deploy=DeployOptions(output_dir=str(tmp_path / "k8s"), **deploy))


class TestManifestYaml:
    def test_key_order(self, config_map):
        ordered = order_manifest({**config_map, "extra": 1, "spec": None})
        assert list(ordered) == ["apiVersion", "kind", "metadata", "data", "extra"]

    def test_multiline_literal_block(self, config_map):
        text = manifest_to_yaml(config_map)
        assert text.startswith("apiVersion: v1\nkind: ConfigMap\n")
        assert "nginx.conf: |\n    server {\n" in text
        assert yaml.safe_load(text) == config_map

    def test_no_aliases(self):
        labels = {"app": "x"}
        text = manifest_to_yaml({"apiVersion": "v1", "kind": "List", "a": labels, "b": labels})
        assert "&" not in text
        assert "*" not in text

    def test_enum_values(self):
        text = manifest_to_yaml({"kind": WorkloadType.DEPLOYMENT})
        assert text == "kind: Deployment\n"

    def test_multi_doc(self, config_map):
        text = manifests_to_multi_doc([config_map, config_map])
        docs = list(yaml.safe_load_all(text))
        assert text.startswith("---\n")
        assert len(docs) == 2


class TestWriteOutput:
    def test_plain(self, output, tmp_path):
        written = write_output(output, make_config(tmp_path))
        out_dir = tmp_path / "k8s"

        assert [p.name for p in written] == [
            "web-conf.yaml",
            "web-secret.yaml",
            "README.md",
            "migrate-db.sh",
        ]
        assert yaml.safe_load((out_dir / "web-conf.yaml").read_text())["kind"] == "ConfigMap"
        script = out_dir / "scripts" / "migrate-db.sh"
        assert os.access(script, os.X_OK)

    def test_single_file(self, output, tmp_path):
        write_output(output, make_config(tmp_path, output_format="single-file"))
        out_dir = tmp_path / "k8s"

        docs = list(yaml.safe_load_all((out_dir / "all-resources.yaml").read_text()))
        assert [d["kind"] for d in docs] == ["ConfigMap", "Secret"]
        assert not (out_dir / "web-conf.yaml").exists()

    def test_validate_written_dir(self, output, tmp_path):
        write_output(output, make_config(tmp_path))
        valid, errors = validate_manifest_dir(tmp_path / "k8s")
        assert valid == 2
        assert errors == []


class TestValidateManifestDir:
    def test_missing_fields(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("kind: Service\nmetadata: {}\n")
        valid, errors = validate_manifest_dir(tmp_path)
        assert valid == 0
        assert errors == [f"{tmp_path / 'bad.yaml'}: Missing required fields: apiVersion, metadata.name"]

    def test_parse_error(self, tmp_path):
        (tmp_path / "broken.yml").write_text("a: [b\n")
        valid, errors = validate_manifest_dir(tmp_path)
        assert "YAML parse error" in errors[0]

    def test_non_object(self, tmp_path):
        (tmp_path / "list.yaml").write_text("- a\n")
        _, errors = validate_manifest_dir(tmp_path)
        assert "non-object" in errors[0]

    def test_missing_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            validate_manifest_dir(tmp_path / "nope")


class TestReadme:
    def test_sections(self, output):
        config = Configuration(deploy=DeployOptions(namespace="shop"))
        readme = generate_readme(output.manifests, config, ["something odd"])

        assert "- `web-secret.yaml`: Secret for web" in readme
        assert "## Secrets" in readme
        assert "## Warnings\n\n- something odd" in readme
        assert "kubectl create namespace shop" in readme
        assert "kubectl apply -n shop -f ." in readme
        assert "## Data migration" in readme

    def test_single_file_default_namespace(self, output):
        config = Configuration(deploy=DeployOptions(output_format="single-file", migration_scripts=False))
        readme = generate_readme(output.manifests[:1], config)

        assert "create namespace" not in readme
        assert "kubectl apply -n default -f all-resources.yaml" in readme
        assert "## Secrets" not in readme
        assert "## Warnings" not in readme
        assert "## Data migration" not in readme


class TestMigrationScripts:
    def _analysis(self, **images):
        services = {
            name: AnalyzedService(
                name=name,
                service=ComposeService(name=name, image=image),
                category=ServiceCategory.DATABASE if name != "app" else ServiceCategory.API,
                workload_type=WorkloadType.STATEFULSET,
            )
            for name, image in images.items()
        }
        graph = DependencyGraph(edges={n: [] for n in services}, order=list(services), has_cycles=False)
        return AnalysisResult(services=services, dependency_graph=graph)

    def test_find_strategy(self):
        assert find_dump_strategy("postgres:16").family == "postgres"
        assert find_dump_strategy("mariadb:11").family == "mariadb"
        assert find_dump_strategy("mongo").family == "mongo"
        assert find_dump_strategy("cockroachdb/cockroach") is None

    def test_generate(self):
        analysis = self._analysis(main_db="postgres:16", docs="mongo:7", app="postgres", odd="cockroach")
        scripts = generate_migration_scripts(analysis, ["main_db", "docs", "app", "odd"], "shop")

        assert [s.filename for s in scripts] == ["migrate-main-db.sh", "migrate-docs.sh"]
        content = scripts[0].content
        assert content.startswith("#!/usr/bin/env bash\n")
        assert "set -euo pipefail" in content
        assert 'NAMESPACE="${NAMESPACE:-shop}"' in content
        assert "docker compose exec -T \"$COMPOSE_SERVICE\"" in content
        assert "app.kubernetes.io/name=main-db" in content
        assert "pg_dump" in content

    def test_only_selected(self):
        analysis = self._analysis(db="postgres")
        assert generate_migration_scripts(analysis, [], "default") == []
