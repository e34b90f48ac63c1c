import pytest

from kubepolicy.manifest.exporter import DEFAULT_LAYOUT, KubeExporter, guess_layout

from conftest import DEPLOYMENT_YAML, load_raw

KUBECTL_STYLE = """\
spec:
  containers:
  - name: app
    args:
    - --verbose
"""

WIDE_STYLE = """\
spec:
    containers:
        -   name: app
            image: nginx
"""


@pytest.mark.parametrize("text, layout", [
    (KUBECTL_STYLE, (2, 2, 0)),
    (DEPLOYMENT_YAML, (2, 4, 2)),
    (WIDE_STYLE, (4, 8, 4)),
    ("kind: Service\nports: [80, 443]\n", DEFAULT_LAYOUT),
])
def test_layout_is_read_from_the_document(text, layout):
    assert guess_layout(load_raw(text)) == layout


def test_documents_built_in_memory_use_default_layout():
    assert guess_layout({"spec": {"containers": [{"name": "app"}]}}) == DEFAULT_LAYOUT


@pytest.mark.parametrize("text", [KUBECTL_STYLE, DEPLOYMENT_YAML, WIDE_STYLE])
def test_dump_reproduces_source_text(text):
    assert KubeExporter().dump(load_raw(text)) == text


def test_export_joins_documents_and_keeps_leading_marker():
    exporter = KubeExporter()
    docs = [load_raw(KUBECTL_STYLE), "kind: Service\n", None]

    assert exporter.export(docs) == KUBECTL_STYLE + "---\nkind: Service\n"
    assert exporter.export(docs, explicit_start=True).startswith("---\nspec:\n")
