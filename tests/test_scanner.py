"""Tests for incremental scanning: change gating, write outcomes, notification."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src so the php_atlas package is importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from php_atlas.config import Config
from php_atlas.indexer import ChangeGatedPersister, CodeScanner, discover, fingerprint, normalize
from php_atlas.indexer.discovery import is_excluded
from php_atlas.parsers import CodeParser
from php_atlas.storage.document_store import SQLiteDocumentStore, StorageError, StorageWriteError
from php_atlas.storage.models import (
    ClassDecl,
    ClassDocument,
    ConstantRecord,
    DocumentBody,
    FunctionDecl,
    ImportDecl,
    MethodRecord,
    NamespaceDecl,
    ParameterRecord,
    PropertyRecord,
    UpsertResult,
)

# ---------------------------------------------------------------------------
# Shared PHP fixtures
# ---------------------------------------------------------------------------

PHP_FOO = """\
<?php
namespace Foo;

use Bar\\Baz;

class C
{
    public $x;
    const K = 1;

    function m()
    {
        return 1;
    }
}

function f($p)
{
}
"""

PHP_BROKEN = "<?php\nclass Broken {\n    public function oops( {\n}\n"

PHP_SCRIPT = "<?php\necho 'no declarations here';\n"

PHP_LIB = "<?php\nclass Vendored {}\n"


@pytest.fixture
def project(tmp_path):
    """A small PHP project with one vendored and one non-PHP file."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "vendor" / "lib").mkdir(parents=True)

    (root / "src" / "Foo.php").write_text(PHP_FOO, encoding="utf-8")
    (root / "src" / "Broken.php").write_text(PHP_BROKEN, encoding="utf-8")
    (root / "src" / "script.php").write_text(PHP_SCRIPT, encoding="utf-8")
    (root / "src" / "README.txt").write_text("not php", encoding="utf-8")
    (root / "vendor" / "lib" / "Lib.php").write_text(PHP_LIB, encoding="utf-8")
    return root.resolve()


@pytest.fixture
def config(project, tmp_path):
    return Config(
        scan_path=project,
        base_path=str(project) + "/",
        excluded_paths=["vendor"],
        extensions=(".php",),
        db_path=tmp_path / "atlas.db",
        auto_scan=False,
        progress_every=2,
    )


@pytest.fixture
def store(config):
    s = SQLiteDocumentStore(db_path=config.db_path)
    yield s
    s.close()


@pytest.fixture
def saved():
    return []


@pytest.fixture
def scanner(store, config, saved):
    s = CodeScanner(store, config)
    s.on_success(saved.append)
    return s


# ---------------------------------------------------------------------------
# Full scans
# ---------------------------------------------------------------------------


class TestScanAll:
    def test_first_scan(self, scanner, saved, store):
        stats = scanner.scan_all()

        assert stats.discovered == 3
        assert (stats.created, stats.modified, stats.unchanged) == (2, 0, 0)
        assert stats.unparsed == 1
        assert stats.failed == 0
        assert [doc.file_name for doc in saved] == ["src/Foo.php", "src/script.php"]
        assert store.stats().files == 2

    def test_stored_document_shape(self, scanner, store, project):
        scanner.scan_all()
        doc = store.get("src/Foo.php")

        assert doc["file_hash"] == fingerprint((project / "src" / "Foo.php").read_bytes())
        assert doc["namespace"] == "Foo"
        assert doc["uses"] == ["Bar\\Baz"]
        assert doc["functions"] == [{"name": "f", "parameters": [{"name": "p", "type": None}]}]

        cls = doc["classes"][0]
        assert cls["name"] == "C"
        assert cls["properties"] == [
            {"name": "x", "visibility": "public", "type": None, "default": None}
        ]
        assert cls["constants"] == [{"name": "K", "value": 1}]
        method = cls["methods"][0]
        assert method["name"] == "m"
        assert method["parameters"] == []
        assert method["phpdoc"] is None
        assert method["source_code"] == "\n".join(PHP_FOO.split("\n")[10:14])
        datetime.fromisoformat(doc["last_updated"])

    def test_rescan_is_idempotent(self, scanner, saved, store):
        scanner.scan_all()
        saved.clear()
        before = store.get("src/Foo.php")

        stats = scanner.scan_all()

        assert stats.unchanged == 2
        assert stats.written == 0
        assert saved == []
        assert store.get("src/Foo.php") == before

    def test_edit_and_revert_both_rewrite(self, scanner, saved, store, project):
        scanner.scan_all()
        path = project / "src" / "Foo.php"

        path.write_text(PHP_FOO.replace("const K = 1;", "const K = 2;"), encoding="utf-8")
        stats = scanner.scan_all()
        assert stats.modified == 1
        assert store.get("src/Foo.php")["classes"][0]["constants"] == [{"name": "K", "value": 2}]

        path.write_text(PHP_FOO, encoding="utf-8")
        stats = scanner.scan_all()
        assert stats.modified == 1
        assert store.get("src/Foo.php")["file_hash"] == fingerprint(PHP_FOO.encode("utf-8"))
        assert len(saved) == 3

    def test_whitespace_change_still_rewrites(self, scanner, store, project):
        scanner.scan_all()
        path = project / "src" / "Foo.php"
        path.write_text(PHP_FOO + "\n", encoding="utf-8")

        assert scanner.scan_all().modified == 1

    def test_invalid_file_does_not_stop_scan(self, scanner, caplog):
        stats = scanner.scan_all()
        assert stats.created == 2
        assert stats.unparsed == 1
        assert "Parse error in file src/Broken.php" in caplog.text

    def test_scan_single_file_root(self, scanner, project, saved):
        stats = scanner.scan_all(scan_root=project / "src" / "Foo.php")
        assert stats.discovered == 1
        assert [doc.file_name for doc in saved] == ["src/Foo.php"]

    def test_override_exclusions(self, scanner, store):
        stats = scanner.scan_all(excluded=[])
        assert stats.discovered == 4
        assert store.get("vendor/lib/Lib.php")["classes"][0]["name"] == "Vendored"

    def test_missing_root_scans_nothing(self, scanner, tmp_path):
        stats = scanner.scan_all(scan_root=tmp_path / "nowhere")
        assert stats.discovered == 0

    def test_replacing_and_clearing_handler(self, scanner, saved, project):
        second = []
        scanner.on_success(second.append)
        scanner.scan_all()
        assert saved == []
        assert len(second) == 2

        scanner.on_success(None)
        (project / "src" / "Foo.php").write_text(PHP_FOO + "// x\n", encoding="utf-8")
        assert scanner.scan_all().modified == 1
        assert len(second) == 2

    def test_file_without_declarations_is_stored_empty(self, scanner, store):
        scanner.scan_all()
        doc = store.get("src/script.php")

        assert doc["namespace"] is None
        assert (doc["uses"], doc["classes"], doc["functions"]) == ([], [], [])

    def test_removed_declarations_empty_the_document(self, scanner, store, project):
        path = project / "src" / "Foo.php"
        scanner.scan_all()
        path.write_text("<?php\necho 'no classes now';\n", encoding="utf-8")

        assert scanner.scan_all().modified == 1
        doc = store.get("src/Foo.php")
        assert (doc["uses"], doc["classes"], doc["functions"]) == ([], [], [])
        assert doc["namespace"] is None
        assert doc["file_hash"] == fingerprint(path.read_bytes())
        assert scanner.scan_all().unchanged == 2

    def test_unparsable_edit_keeps_previous_document(self, scanner, store, project):
        scanner.scan_all()
        before = store.get("src/Foo.php")
        (project / "src" / "Foo.php").write_text(PHP_BROKEN, encoding="utf-8")

        stats = scanner.scan_all()

        assert stats.unparsed == 2
        assert store.get("src/Foo.php") == before

    def test_out_of_range_escape_does_not_stop_scan(self, scanner, store, project):
        (project / "src" / "A.php").write_text(
            '<?php\nclass A { public $x = "\\u{110000}"; }\n', encoding="utf-8"
        )

        stats = scanner.scan_all()

        assert stats.failed == 0
        assert store.get("src/A.php")["classes"][0]["properties"][0]["default"] == "\\u{110000}"
        assert store.get("src/Foo.php") is not None


class FailingStore(SQLiteDocumentStore):
    """Rejects writes for files whose name contains 'Bad'."""

    def upsert(self, fields):
        if "Bad" in fields["file_name"]:
            raise StorageWriteError("disk full")
        return super().upsert(fields)


def test_write_failure_is_isolated_per_file(project, config, tmp_path, caplog):
    (project / "src" / "Bad.php").write_text("<?php\nfunction bad() {}\n", encoding="utf-8")
    store = FailingStore(db_path=tmp_path / "failing.db")
    try:
        stats = CodeScanner(store, config).scan_all()

        assert stats.failed == 1
        assert stats.created == 2
        assert store.get("src/Foo.php") is not None
        assert store.get("src/Bad.php") is None
        assert "Failed to save data for file src/Bad.php" in caplog.text
    finally:
        store.close()


class ExplodingParser(CodeParser):
    """Fails with an unexpected error on files named Boom.php."""

    def parse_content(self, content, file_name):
        if file_name.endswith("Boom.php"):
            raise RuntimeError("unexpected node shape")
        return super().parse_content(content, file_name)


def test_unexpected_error_is_isolated_per_file(project, config, store, caplog):
    (project / "src" / "Boom.php").write_text("<?php\nclass Boom {}\n", encoding="utf-8")

    stats = CodeScanner(store, config, parser=ExplodingParser()).scan_all()

    assert stats.failed == 1
    assert stats.created == 2
    assert store.get("src/Boom.php") is None
    assert store.get("src/script.php") is not None
    assert "Failed to process file src/Boom.php: unexpected node shape" in caplog.text


# ---------------------------------------------------------------------------
# Persister
# ---------------------------------------------------------------------------


class FakeStore:
    """In-memory store returning a fixed upsert result."""

    def __init__(self, result=UpsertResult.CREATED, existing=None, lookup_error=False):
        self.result = result
        self.existing = existing
        self.lookup_error = lookup_error
        self.writes = []

    def find_one(self, query):
        if self.lookup_error:
            raise StorageError("database is locked")
        return self.existing

    def upsert(self, fields):
        self.writes.append(fields)
        return self.result


FIXED_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestPersister:
    def _body(self):
        return DocumentBody(namespace="Foo", uses=["A"])

    def test_created_notifies_with_timestamp(self):
        seen = []
        store = FakeStore()
        persister = ChangeGatedPersister(store, observer=seen.append, clock=lambda: FIXED_TIME)

        assert persister.persist("a.php", b"<?php", self._body) == "created"
        assert store.writes[0]["last_updated"] == FIXED_TIME.isoformat()
        assert store.writes[0]["file_hash"] == fingerprint(b"<?php")
        assert seen[0].file_name == "a.php"
        assert seen[0].last_updated == FIXED_TIME

    def test_modified_notifies(self):
        seen = []
        persister = ChangeGatedPersister(FakeStore(UpsertResult.MODIFIED), observer=seen.append)
        assert persister.persist("a.php", b"x", self._body) == "modified"
        assert len(seen) == 1

    def test_noop_does_not_notify(self):
        seen = []
        persister = ChangeGatedPersister(FakeStore(UpsertResult.NOOP), observer=seen.append)
        assert persister.persist("a.php", b"x", self._body) == "noop"
        assert seen == []

    def test_unchanged_skips_extraction(self):
        calls = []
        store = FakeStore(existing={"file_name": "a.php"})
        persister = ChangeGatedPersister(store)

        outcome = persister.persist("a.php", b"x", lambda: calls.append(1))

        assert outcome == "unchanged"
        assert calls == []
        assert store.writes == []

    def test_unparsed_file_not_written(self):
        store = FakeStore()
        persister = ChangeGatedPersister(store)
        assert persister.persist("a.php", b"x", lambda: None) == "unparsed"
        assert store.writes == []

    def test_empty_body_is_written(self):
        store = FakeStore()
        persister = ChangeGatedPersister(store)

        assert persister.persist("a.php", b"<?php", DocumentBody) == "created"
        assert store.writes[0]["classes"] == []
        assert store.writes[0]["namespace"] is None

    def test_observer_sees_written_text(self):
        seen = []
        store = FakeStore()
        persister = ChangeGatedPersister(store, observer=seen.append)
        body = DocumentBody(
            classes=[ClassDocument(name="C", constants=[ConstantRecord("K", "bad\ud800")])]
        )

        persister.persist("a.php", b"x", lambda: body)

        assert store.writes[0]["classes"][0]["constants"] == [{"name": "K", "value": "bad?"}]
        assert seen[0].to_dict() == store.writes[0]

    def test_lookup_failure(self):
        persister = ChangeGatedPersister(FakeStore(lookup_error=True))
        assert persister.persist("a.php", b"x", self._body) == "failed"

    def test_fingerprint_is_sha256_hex(self):
        assert fingerprint(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        assert fingerprint(b"a") != fingerprint(b"a ")


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class TestNormalize:
    def test_reshapes_declarations(self):
        method = MethodRecord(
            name="m",
            parameters=[ParameterRecord("id", "int")],
            doc="/** M. */",
            source_text="function m(int $id) {}",
        )
        body = normalize([
            NamespaceDecl("App"),
            ImportDecl("A"),
            ImportDecl("B"),
            ImportDecl("A"),
            ClassDecl(
                "C",
                methods=[method],
                properties=[PropertyRecord("x")],
                constants=[ConstantRecord("K", 1)],
            ),
            FunctionDecl("f", [ParameterRecord("p")]),
            NamespaceDecl("Other"),
        ])

        assert body.namespace == "App"
        assert body.uses == ["A", "B", "A"]
        assert body.classes[0].to_dict() == {
            "name": "C",
            "methods": [
                {
                    "name": "m",
                    "parameters": [{"name": "id", "type": "int"}],
                    "phpdoc": "/** M. */",
                    "source_code": "function m(int $id) {}",
                }
            ],
            "constants": [{"name": "K", "value": 1}],
            "properties": [
                {"name": "x", "visibility": "private", "type": None, "default": None}
            ],
        }
        assert body.functions[0].to_dict() == {
            "name": "f",
            "parameters": [{"name": "p", "type": None}],
        }

    def test_no_namespace(self):
        body = normalize([FunctionDecl("f")])
        assert body.namespace is None
        assert body.uses == []


# ---------------------------------------------------------------------------
# Discovery and configuration
# ---------------------------------------------------------------------------


class TestDiscovery:
    def test_filters_extension_and_exclusions(self, project):
        files = discover(project, ["vendor"], (".php",))
        assert [f.name for f in files] == ["Broken.php", "Foo.php", "script.php"]
        assert all(f.is_absolute() for f in files)

    def test_exclusion_is_substring_match(self):
        assert is_excluded("/app/vendor/x.php", ["vendor"])
        assert is_excluded("/app/myvendors/x.php", ["vendor"])
        assert not is_excluded("/app/src/x.php", ["vendor", ""])

    def test_relative_path(self, config, project):
        assert config.relative_path(project / "src" / "Foo.php") == "src/Foo.php"

    def test_relative_path_outside_base(self, config, tmp_path):
        other = tmp_path / "elsewhere" / "x.php"
        assert config.relative_path(other) == other.as_posix()

    def test_relative_path_windows_style_base(self):
        cfg = Config(base_path="C:\\work\\app\\")
        assert cfg.relative_path("C:/work/app/src/A.php") == "src/A.php"

    def test_validate(self, config, tmp_path):
        assert config.validate() == []

        broken = Config(scan_path=tmp_path / "missing", extensions=(), progress_every=-1)
        errors = broken.validate()
        assert len(errors) == 3
