import base64
import json

import pytest

from tmplstack.error.exceptions import TemplateSourceError
from tmplstack.templates.sources import (
    BundleSource,
    DirectorySource,
    TraversableSource,
    dump_bundle,
    load_bundle,
    load_template_files,
    read_bundle,
    scan_bundle,
    write_bundle,
)


def test_directory_source_names_and_extensions(template_dir):
    files = DirectorySource(template_dir, [".tmpl"]).read()
    assert sorted(files) == ["child.tmpl", "grand-child.tmpl", "parent.tmpl", "partials/question.tmpl"]

    default = DirectorySource(template_dir)
    assert default.extensions == (".html", ".tmpl")
    assert "notes.txt" not in default.read()

    assert sorted(DirectorySource(template_dir, ["txt"]).read()) == ["notes.txt"]


def test_missing_root_raises(tmp_path):
    source = DirectorySource(tmp_path / "missing")
    with pytest.raises(TemplateSourceError):
        source.fingerprint()
    with pytest.raises(TemplateSourceError):
        source.read()


def test_fingerprint_is_stable(template_dir):
    source = DirectorySource(template_dir)
    assert source.fingerprint() == source.fingerprint()


def test_fingerprint_tracks_mtime(template_dir, touch):
    source = DirectorySource(template_dir)
    before = source.fingerprint()
    touch(template_dir / "parent.tmpl")
    assert source.fingerprint() != before


def test_fingerprint_tracks_added_and_removed_files(template_dir):
    source = DirectorySource(template_dir)
    before = source.fingerprint()

    (template_dir / "extra.tmpl").write_text("extra")
    added = source.fingerprint()
    assert added != before

    (template_dir / "extra.tmpl").unlink()
    assert source.fingerprint() == before

    # files with other extensions do not count
    (template_dir / "README.md").write_text("readme")
    assert source.fingerprint() == before


def test_load_template_files_splits_directives(template_dir):
    files = load_template_files(DirectorySource(template_dir))
    assert files["child.tmpl"].layout == "parent.tmpl"
    assert files["grand-child.tmpl"].layout == "child.tmpl"
    assert files["parent.tmpl"].is_root
    assert not files["child.tmpl"].body.startswith(b"{{/*")
    assert files["child.tmpl"].raw.startswith(b"{{/*")


def test_bundle_is_static_and_content_fingerprinted():
    bundle = BundleSource({"a.html": b"one"})
    assert bundle.is_static
    assert bundle.fingerprint() == BundleSource({"a.html": b"one"}).fingerprint()
    assert bundle.fingerprint() != BundleSource({"a.html": b"two"}).fingerprint()


def test_bundle_format_is_base64_json():
    text = dump_bundle({"a.html": b"<p>\xc3\xa9</p>"})
    assert json.loads(text) == {"a.html": base64.b64encode(b"<p>\xc3\xa9</p>").decode()}
    assert load_bundle(text).read() == {"a.html": b"<p>\xc3\xa9</p>"}


@pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"a.html": 3}', '{"a.html": "!!!"}'])
def test_invalid_bundles(text):
    with pytest.raises(TemplateSourceError):
        load_bundle(text)


def test_scan_write_and_read_bundle(template_dir, tmp_path):
    files = scan_bundle(template_dir, ["tmpl"])
    path = write_bundle(tmp_path / "out" / "bundle.json", files)
    assert read_bundle(path).read() == files


def test_scan_bundle_requires_templates(tmp_path):
    with pytest.raises(TemplateSourceError, match="No template files found"):
        scan_bundle(tmp_path)


def test_bundle_rejects_nul_in_names():
    with pytest.raises(TemplateSourceError, match="Invalid template name"):
        BundleSource({"\x00layers/0/a.html": b"x"})


def test_traversable_source_reads_package_data(sample_package):
    source = TraversableSource.from_package(sample_package, "views")
    assert not source.is_static
    files = source.read()
    assert sorted(files) == ["base.html", "page.html", "partials/nav.html"]
    assert files["partials/nav.html"] == b"<nav/>"
    assert source.fingerprint() == TraversableSource.from_package(sample_package, "views").fingerprint()
    assert "sample_templates:views" in repr(source)


def test_traversable_source_fingerprints_contents(tmp_path):
    root = tmp_path / "views"
    root.mkdir()
    (root / "a.html").write_text("one")
    source = TraversableSource(root)
    before = source.fingerprint()
    (root / "a.html").write_text("two")
    assert source.fingerprint() != before


def test_traversable_source_errors(sample_package):
    with pytest.raises(TemplateSourceError, match="not found"):
        TraversableSource.from_package(sample_package, "missing").read()
    with pytest.raises(TemplateSourceError, match="Cannot load templates"):
        TraversableSource.from_package("no_such_package_for_templates")
