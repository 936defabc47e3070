import httpx
import pytest

from helpers import ADMIN, BASE_URL, mock_client
from stockbook.storage import (
    BackendError,
    BackendKind,
    BlobSnapshotStore,
    Credentials,
    EmbeddedBackend,
    FileSnapshotStore,
    HybridBackend,
    RemoteDocumentBackend,
    RemoteRelationalBackend,
    RunResult,
    SnapshotUnavailable,
    StorageBackend,
    StorageSettings,
    TransientBackendError,
    create_backend,
    resolve_backend_kind,
)
from stockbook.storage.selector import DESKTOP, WEB


class RecordingBackend(StorageBackend):
    def __init__(self, kind, fail_ping=False):
        self.kind = kind
        self.fail_ping = fail_ping
        self.opened = self.closed = False

    def open(self):
        self.opened = True
        return self

    def close(self):
        self.closed = True

    def ping(self):
        if self.fail_ping:
            raise TransientBackendError("unreachable")

    def execute_run(self, sql, params):
        return RunResult(self.kind.value, 1)

    def execute_get(self, sql, params):
        return {"backend": self.kind.value}

    def execute_all(self, sql, params):
        return [{"backend": self.kind.value}]


class TestHybridBackend:
    def make(self, use_remote=True, fail_ping=False):
        self.local = RecordingBackend(BackendKind.LOCAL)
        self.remote = RecordingBackend(BackendKind.DOCUMENT, fail_ping=fail_ping)
        return HybridBackend(lambda: self.local, lambda: self.remote, use_remote=use_remote)

    def test_prefers_reachable_remote(self):
        hybrid = self.make().open()
        assert hybrid.mode == "remote"
        assert hybrid.prepare("SELECT * FROM companies").get() == {"backend": "document"}
        assert self.local.opened is False

    def test_unreachable_remote_falls_back_to_local(self):
        hybrid = self.make(fail_ping=True).open()
        assert hybrid.mode == "local"
        assert self.remote.closed is True
        assert hybrid.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme").last_insert_rowid == "local"

    def test_local_only_never_builds_remote(self):
        hybrid = HybridBackend(lambda: RecordingBackend(BackendKind.LOCAL)).open()
        assert hybrid.mode == "local"

    def test_switch_mode_reopens(self):
        hybrid = self.make(use_remote=False).open()
        assert hybrid.mode == "local"
        assert hybrid.switch_mode(True) == "remote"
        assert self.local.closed is True
        assert hybrid.switch_mode(False) == "local"

    def test_prepared_statement_follows_switch(self):
        hybrid = self.make(use_remote=False).open()
        statement = hybrid.prepare("SELECT * FROM companies")
        assert statement.get() == {"backend": "local"}

        hybrid.switch_mode(True)
        assert statement.get() == {"backend": "document"}
        assert statement.all() == [{"backend": "document"}]

    def test_statement_prepared_before_open_runs_after_open(self):
        hybrid = self.make(use_remote=False)
        statement = hybrid.prepare("SELECT * FROM companies")
        with pytest.raises(BackendError):
            statement.get()
        hybrid.open()
        assert statement.get() == {"backend": "local"}

    def test_unopened_rejects_queries(self):
        with pytest.raises(BackendError):
            self.make().prepare("SELECT 1").get()

    def test_falls_back_when_server_is_down(self, tmp_path):
        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        hybrid = HybridBackend(
            lambda: EmbeddedBackend(FileSnapshotStore(tmp_path / "s.db"), autosave_interval=None),
            lambda: RemoteDocumentBackend.for_base_url(BASE_URL, ADMIN, client=mock_client(refused)),
            use_remote=True,
        )
        with hybrid:
            assert hybrid.mode == "local"
            hybrid.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme")
            assert hybrid.prepare("SELECT name FROM companies").all() == [{"name": "Acme"}]

    def test_missing_credentials_fall_back(self, tmp_path):
        hybrid = HybridBackend(
            lambda: EmbeddedBackend(FileSnapshotStore(tmp_path / "s.db"), autosave_interval=None),
            lambda: RemoteRelationalBackend.for_base_url(BASE_URL, None, client=mock_client(lambda r: httpx.Response(200))),
            use_remote=True,
        )
        with hybrid:
            assert hybrid.mode == "local"

    def test_uses_live_server(self, http_client, tmp_path):
        hybrid = HybridBackend(
            lambda: EmbeddedBackend(FileSnapshotStore(tmp_path / "s.db"), autosave_interval=None),
            lambda: RemoteRelationalBackend.for_base_url(BASE_URL, ADMIN, client=http_client),
            use_remote=True,
        )
        with hybrid:
            assert hybrid.mode == "remote"
            assert hybrid.prepare("SELECT * FROM companies").all() == []


class TestSelection:
    @pytest.mark.parametrize("env, expected", [
        ({}, BackendKind.LOCAL),
        ({"STOCKBOOK_USE_POSTGRES": "true"}, BackendKind.RELATIONAL),
        ({"STOCKBOOK_USE_MONGODB": "1"}, BackendKind.DOCUMENT),
        ({"STOCKBOOK_USE_MONGODB": "1", "STOCKBOOK_USE_POSTGRES": "1"}, BackendKind.DOCUMENT),
        ({"STOCKBOOK_RUNTIME": "desktop"}, BackendKind.HYBRID),
        ({"STOCKBOOK_RUNTIME": "desktop", "STOCKBOOK_BACKEND": "local"}, BackendKind.LOCAL),
        ({"STOCKBOOK_BACKEND": "relational", "STOCKBOOK_USE_MONGODB": "1"}, BackendKind.RELATIONAL),
    ])
    def test_resolve_backend_kind(self, env, expected):
        assert resolve_backend_kind(StorageSettings.from_env(env)) == expected

    def test_from_env_reads_everything(self):
        settings = StorageSettings.from_env({
            "STOCKBOOK_RUNTIME": "Desktop",
            "STOCKBOOK_API_URL": "http://server:5000",
            "STOCKBOOK_DATA_DIR": "/tmp/stockbook",
            "STOCKBOOK_AUTOSAVE_SECONDS": "0",
            "STOCKBOOK_ADMIN_USERNAME": "admin",
            "STOCKBOOK_ADMIN_PASSWORD": "secret",
        })
        assert settings.runtime == DESKTOP
        assert settings.api_url == "http://server:5000"
        assert settings.data_dir == "/tmp/stockbook"
        assert settings.autosave_seconds is None
        assert settings.credentials == Credentials("admin", "secret")

    def test_invalid_runtime_rejected(self):
        with pytest.raises(ValueError):
            StorageSettings.from_env({"STOCKBOOK_RUNTIME": "mobile"})

    def test_partial_credentials_mean_none(self):
        assert StorageSettings.from_env({"STOCKBOOK_ADMIN_USERNAME": "admin"}).credentials is None

    def test_web_local_persists_to_blob_store(self):
        settings = StorageSettings(runtime=WEB, blob_url="https://blobs.example", blob_token="t")
        backend = create_backend(settings)
        assert isinstance(backend, EmbeddedBackend)
        assert isinstance(backend.primary, BlobSnapshotStore)

    def test_web_local_has_file_alternate(self, tmp_path):
        settings = StorageSettings(runtime=WEB, blob_url="https://blobs.example", data_dir=str(tmp_path))
        backend = create_backend(settings)
        assert isinstance(backend.alternate, FileSnapshotStore)
        assert backend.alternate.path == tmp_path / "stockbook.db"

    def test_web_falls_back_to_file_when_blob_store_unavailable(self, tmp_path):
        # No token: the blob store is unusable before any request is made
        settings = StorageSettings(
            runtime=WEB, blob_url="https://blobs.example", data_dir=str(tmp_path), autosave_seconds=None
        )
        with create_backend(settings) as backend:
            assert backend.target is backend.alternate
            assert backend.persistent
            backend.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme")

        assert (tmp_path / "stockbook.db").exists()
        with EmbeddedBackend(FileSnapshotStore(tmp_path / "stockbook.db"), autosave_interval=None) as reopened:
            assert reopened.prepare("SELECT name FROM companies").all() == [{"name": "Acme"}]

    def test_desktop_local_persists_to_file(self, tmp_path):
        settings = StorageSettings(runtime=DESKTOP, data_dir=str(tmp_path))
        backend = create_backend(settings, BackendKind.LOCAL)
        assert isinstance(backend.primary, FileSnapshotStore)
        assert backend.primary.path == tmp_path / "stockbook.db"
        assert backend.alternate is None

    def test_desktop_local_uses_blob_store_as_alternate(self, tmp_path):
        settings = StorageSettings(runtime=DESKTOP, data_dir=str(tmp_path), blob_url="https://blobs.example")
        backend = create_backend(settings, BackendKind.LOCAL)
        assert isinstance(backend.primary, FileSnapshotStore)
        assert isinstance(backend.alternate, BlobSnapshotStore)

    def test_desktop_hybrid_choices(self, tmp_path):
        plain = create_backend(StorageSettings(runtime=DESKTOP, data_dir=str(tmp_path)))
        assert isinstance(plain, HybridBackend)
        assert plain.use_remote is False

        synced = create_backend(StorageSettings(runtime=DESKTOP, mongodb_sync=True, data_dir=str(tmp_path)))
        assert synced.use_remote is True
        assert isinstance(synced._remote_factory(), RemoteDocumentBackend)

        postgres = create_backend(StorageSettings(runtime=DESKTOP, use_postgres=True, data_dir=str(tmp_path)))
        assert isinstance(postgres._remote_factory(), RemoteRelationalBackend)

    def test_remote_kinds_point_at_their_handlers(self):
        settings = StorageSettings(api_url="http://server:5000/", credentials=ADMIN)
        relational = create_backend(settings, BackendKind.RELATIONAL)
        document = create_backend(settings, BackendKind.DOCUMENT)
        assert relational.api_url == "http://server:5000/api/db/postgres"
        assert relational.setup_url == "http://server:5000/api/db/setup"
        assert document.api_url == "http://server:5000/api/db/mongodb"
        assert document.health_url == "http://server:5000/api/health"


class TestBlobSnapshotStore:
    def make(self, handler, token="secret"):
        return BlobSnapshotStore("https://blobs.example/store", token=token, client=mock_client(handler))

    def test_load_missing_is_none(self):
        assert self.make(lambda request: httpx.Response(404)).load() is None

    def test_save_and_load(self):
        blobs = {}

        def handler(request):
            assert request.headers["Authorization"] == "Bearer secret"
            if request.method == "PUT":
                blobs[request.url.path] = request.content
                return httpx.Response(200)
            return httpx.Response(200, content=blobs[request.url.path])

        store = self.make(handler)
        store.save(b"SQLite format 3\x00")
        assert store.load() == b"SQLite format 3\x00"
        assert list(blobs) == ["/store/stockbook.db"]

    def test_failures_are_snapshot_unavailable(self):
        def refused(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(SnapshotUnavailable):
            self.make(refused).load()
        with pytest.raises(SnapshotUnavailable):
            self.make(lambda request: httpx.Response(500)).save(b"x")
        with pytest.raises(SnapshotUnavailable):
            self.make(lambda request: httpx.Response(200), token=None).load()
