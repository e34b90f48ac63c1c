import asyncio
from functools import partial

import pytest
from ruamel.yaml import YAML

from kubepolicy.core.engine import PolicyEngine
from kubepolicy.manifest.context import FAILED, PASSTHROUGH, POLICY_APPLIED, REJECTED

from conftest import DEPLOYMENT_YAML, POLICY_KEY, FakeResolver, load_plain

SERVICE_YAML = """\
apiVersion: v1
kind: Service
metadata:
  name: web
spec:
  ports:
    - port: 80
"""

BROKEN_DEPLOYMENT_YAML = DEPLOYMENT_YAML.replace("name: web\n", "name: broken\n", 1).replace(
    "image: busybox", "image: registry.example.com/broken/app:1")


@pytest.fixture
def engine(tmp_path, settings):
    return PolicyEngine(str(tmp_path), settings=settings, resolver_factory=FakeResolver)


def write(tmp_path, name, text):
    path = tmp_path / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_multi_document_statuses(engine):
    text = "---\n".join([
        SERVICE_YAML,
        DEPLOYMENT_YAML,
        "apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: empty\nspec:\n  replicas: 1\n",
        "apiVersion: v1\nkind: Widget\nmetadata:\n  name: thing\n",
    ])
    context = asyncio.run(engine.process_text(text))

    assert [d.status for d in context.documents] == [PASSTHROUGH, POLICY_APPLIED, REJECTED, REJECTED]
    assert "spec.template" in context.documents[2].error
    assert "Widget" in context.documents[3].error

    # Untouched documents are re-emitted as they were
    assert load_plain(context.documents[0].rendered) == load_plain(SERVICE_YAML)
    applied = load_plain(context.documents[1].rendered)
    assert POLICY_KEY in applied["spec"]["template"]["metadata"]["annotations"]


def test_one_failed_lookup_only_fails_its_document(tmp_path, settings):
    engine = PolicyEngine(str(tmp_path), settings=settings,
                          resolver_factory=partial(FakeResolver, fail_on="broken"))
    context = asyncio.run(engine.process_text(DEPLOYMENT_YAML + "---\n" + BROKEN_DEPLOYMENT_YAML))

    good, bad = context.documents
    assert good.status == POLICY_APPLIED
    assert bad.status == FAILED
    assert "registry unreachable" in bad.error
    assert bad.policy is None
    assert POLICY_KEY not in bad.rendered


def test_dry_run_previews_without_writing(engine, tmp_path):
    path = write(tmp_path, "app.yaml", DEPLOYMENT_YAML)
    report = engine.generate_for_file("app.yaml", dry_run=True)

    assert report["status"] == "PREVIEW"
    assert report["success"] is True
    assert report["written"] is False
    assert POLICY_KEY in report["policy_content"]
    assert path.read_text() == DEPLOYMENT_YAML
    assert [d["status"] for d in report["documents"]] == [POLICY_APPLIED]


def test_write_creates_backup_and_annotates(engine, tmp_path):
    path = write(tmp_path, "app.yaml", DEPLOYMENT_YAML)
    report = engine.generate_for_file("app.yaml", dry_run=False)

    assert report["status"] == "APPLIED"
    assert report["written"] is True
    assert report["backup_created"] == "app.kubepolicy.backup"
    assert (tmp_path / "app.kubepolicy.backup").read_text() == DEPLOYMENT_YAML

    written = load_plain(path.read_text())
    original = load_plain(DEPLOYMENT_YAML)
    annotations = written["spec"]["template"]["metadata"].pop("annotations")
    assert list(annotations) == [POLICY_KEY]
    assert written == original


def test_second_run_rewrites_same_policy(engine, tmp_path):
    path = write(tmp_path, "app.yaml", DEPLOYMENT_YAML)
    engine.generate_for_file("app.yaml", dry_run=False)
    first = path.read_text()

    report = engine.generate_for_file("app.yaml", dry_run=False)
    assert report["status"] == "UNCHANGED"
    assert path.read_text() == first


def test_partial_file_needs_force(tmp_path, settings):
    engine = PolicyEngine(str(tmp_path), settings=settings,
                          resolver_factory=partial(FakeResolver, fail_on="broken"))
    text = DEPLOYMENT_YAML + "---\n" + BROKEN_DEPLOYMENT_YAML
    path = write(tmp_path, "mixed.yaml", text)

    report = engine.generate_for_file("mixed.yaml", dry_run=False)
    assert report["partial"] is True
    assert report["written"] is False
    assert path.read_text() == text

    report = engine.generate_for_file("mixed.yaml", dry_run=False, force_write=True)
    assert report["status"] == "PARTIAL"
    assert report["written"] is True
    docs = list(YAML(typ="safe").load_all(path.read_text()))
    assert POLICY_KEY in docs[0]["spec"]["template"]["metadata"]["annotations"]
    assert "annotations" not in docs[1]["spec"]["template"]["metadata"]


def test_passthrough_only_file_is_unchanged(engine, tmp_path):
    write(tmp_path, "svc.yaml", SERVICE_YAML)
    report = engine.generate_for_file("svc.yaml", dry_run=False)

    assert report["status"] == "UNCHANGED"
    assert report["written"] is False
    assert report["policy_content"] is None


def test_fully_failed_file(engine, tmp_path):
    write(tmp_path, "bad.yaml", "apiVersion: v1\nkind: Widget\nmetadata:\n  name: x\n")
    report = engine.generate_for_file("bad.yaml", dry_run=False, force_write=True)

    assert report["status"] == "FAILED"
    assert report["written"] is False


def test_parse_error_and_missing_file(engine, tmp_path):
    write(tmp_path, "broken.yaml", "kind: [unclosed\n")

    assert engine.generate_for_file("broken.yaml")["status"] == "PARSE_ERROR"
    assert engine.generate_for_file("nowhere.yaml")["status"] == "FILE_NOT_FOUND"


def test_unsupported_fields_are_warnings(tmp_path, settings):
    text = DEPLOYMENT_YAML.replace("        - name: sidecar\n", "          tenant: blue\n        - name: sidecar\n")
    write(tmp_path, "app.yaml", text)

    loud = PolicyEngine(str(tmp_path), settings=settings, resolver_factory=FakeResolver)
    report = loud.generate_for_file("app.yaml")
    assert report["success"] is True
    assert report["warnings"] == ["Unsupported field 'spec.template.spec.containers[0].tenant' ignored"]

    quiet = PolicyEngine(str(tmp_path), settings=settings, resolver_factory=FakeResolver,
                         silent_unsupported_fields=True)
    assert quiet.generate_for_file("app.yaml")["warnings"] == []


def test_discover_files_and_summary(engine, tmp_path):
    write(tmp_path, "a/app.yaml", DEPLOYMENT_YAML)
    write(tmp_path, "b/svc.yaml", SERVICE_YAML)
    write(tmp_path, "notes.txt", "not a manifest")

    files = engine.discover_files(".yaml")
    assert [str(f.relative_to(engine.workspace)) for f in files] == ["a/app.yaml", "b/svc.yaml"]
    assert engine.discover_files(".yaml", max_depth=1) == []

    reports = [engine.generate_for_file(str(f.relative_to(engine.workspace)), dry_run=True) for f in files]
    summary = engine.generate_summary(reports)
    assert summary["total_files"] == 2
    assert summary["successful"] == 2
    assert summary["policies_generated"] == 1
    assert summary["written_to_disk"] == 0


def test_leading_document_marker_is_kept(engine, tmp_path):
    write(tmp_path, "svc.yaml", "---\n" + SERVICE_YAML)
    report = engine.generate_for_file("svc.yaml", dry_run=False)
    assert report["status"] == "UNCHANGED"
    assert report["written"] is False

    path = write(tmp_path, "app.yaml", "---\n" + DEPLOYMENT_YAML)
    report = engine.generate_for_file("app.yaml", dry_run=False)
    assert report["written"] is True
    assert path.read_text().startswith("---\napiVersion: apps/v1\n")


def test_resolver_is_closed_per_file(tmp_path, settings):
    resolvers = []

    def factory():
        resolvers.append(FakeResolver())
        return resolvers[-1]

    engine = PolicyEngine(str(tmp_path), settings=settings, resolver_factory=factory)
    asyncio.run(engine.process_text(DEPLOYMENT_YAML))

    assert len(resolvers) == 1
    assert resolvers[0].closed is True
    assert [image for image, _ in resolvers[0].calls] == ["nginx:1.25", "busybox"]
