from datetime import datetime, timezone

import aiosqlite
import pytest

from phasegate.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    RecordStoreError,
    StoreUnavailableError,
)
from phasegate.models import (
    RFI,
    Collection,
    Document,
    GateContext,
    Phase,
    TransitionTrace,
    WorkPackage,
)
from phasegate.orchestration import PhaseGateEngine
from phasegate.store import isin, ne
from phasegate.store.database import SCHEMA_VERSION, get_db, run_migrations
from phasegate.store.repositories import SqliteRecordStore, build_where


@pytest.mark.asyncio
async def test_migrations_create_tables(tmp_path) -> None:
    async with get_db(str(tmp_path / "schema.db")) as db:
        assert isinstance(db, aiosqlite.Connection)
        cursor = await db.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        names = {row[0] for row in await cursor.fetchall()}
    assert {"records", "transition_traces"} <= names


@pytest.mark.asyncio
async def test_records_round_trip(tmp_path) -> None:
    async with get_db(str(tmp_path / "rt.db")) as db:
        store = SqliteRecordStore(db)
        doc = Document(
            id="DOC-1",
            project_id="P-1",
            title="O&M manual",
            tags=("closeout", "manual"),
            linked_work_package_ids=("WP-1",),
        )
        await store.create(Collection.DOCUMENT, doc)

        loaded = await store.get(Collection.DOCUMENT, "DOC-1")

    assert loaded == doc


@pytest.mark.asyncio
async def test_duplicate_create_rejected(tmp_path) -> None:
    async with get_db(str(tmp_path / "dup.db")) as db:
        store = SqliteRecordStore(db)
        wp = WorkPackage(id="WP-1", project_id="P-1")
        await store.create(Collection.WORK_PACKAGE, wp)
        with pytest.raises(RecordStoreError):
            await store.create(Collection.WORK_PACKAGE, wp)


@pytest.mark.asyncio
async def test_filter_criteria(tmp_path) -> None:
    async with get_db(str(tmp_path / "filter.db")) as db:
        store = SqliteRecordStore(db)
        rfis = [
            RFI(id="R-1", project_id="P-1", rfi_number=1, status="submitted", fab_blocker=True,
                affects_release_group_id="RG-1"),
            RFI(id="R-2", project_id="P-1", rfi_number=2, status="closed", fab_blocker=True,
                affects_release_group_id="RG-1"),
            RFI(id="R-3", project_id="P-1", rfi_number=3, status="under_review", fab_blocker=False),
            RFI(id="R-4", project_id="P-2", rfi_number=4, status="submitted", fab_blocker=True),
        ]
        for rfi in rfis:
            await store.create(Collection.RFI, rfi)

        blocking = await store.filter(
            Collection.RFI,
            {"project_id": "P-1", "fab_blocker": True, "status": isin(["submitted", "under_review"])},
        )
        unscoped = await store.filter(Collection.RFI, {"affects_release_group_id": None})
        not_closed = await store.filter(Collection.RFI, {"status": ne("closed")})
        nothing = await store.filter(Collection.RFI, {"id": isin([])})

    assert [r.id for r in blocking] == ["R-1"]
    assert [r.id for r in unscoped] == ["R-3", "R-4"]
    assert [r.id for r in not_closed] == ["R-1", "R-3", "R-4"]
    assert nothing == []


def test_build_where_rejects_unsafe_field_names() -> None:
    with pytest.raises(ValueError):
        build_where(Collection.RFI, {"status') OR 1=1 --": "x"})


@pytest.mark.asyncio
async def test_optimistic_locking(tmp_path) -> None:
    async with get_db(str(tmp_path / "lock.db")) as db:
        store = SqliteRecordStore(db)
        await store.create(Collection.WORK_PACKAGE, WorkPackage(id="WP-1", project_id="P-1"))

        updated = await store.update(
            Collection.WORK_PACKAGE, "WP-1", {"phase": Phase.DETAILING}, expected_version=1, actor="pm"
        )
        assert updated.version == 2
        assert updated.phase == Phase.DETAILING

        with pytest.raises(ConcurrentModificationError):
            await store.update(Collection.WORK_PACKAGE, "WP-1", {"name": "x"}, expected_version=1)
        with pytest.raises(NotFoundError):
            await store.update(Collection.WORK_PACKAGE, "WP-404", {"name": "x"})

        reloaded = await store.get(Collection.WORK_PACKAGE, "WP-1")
        assert reloaded.version == 2
        assert reloaded.phase == Phase.DETAILING


@pytest.mark.asyncio
async def test_transition_traces_saved_in_order(tmp_path) -> None:
    stamp = datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)
    async with get_db(str(tmp_path / "traces.db")) as db:
        store = SqliteRecordStore(db)
        wp = WorkPackage(id="WP-1", project_id="P-1", phase=Phase.PLANNING)
        illegal = TransitionTrace.illegal(
            wp, Phase.ERECTION, reason="Illegal transition: planning -> erection",
            action="Advance to detailing first", timestamp=stamp,
        )
        await store.save_transition_trace(illegal, actor="pm")
        await store.save_transition_trace(illegal.model_copy(update={"to_phase": Phase.CLOSEOUT}))

        traces = await store.get_transition_traces("WP-1")
        others = await store.get_transition_traces("WP-2")

    assert [t.to_phase for t in traces] == [Phase.ERECTION, Phase.CLOSEOUT]
    assert traces[0] == illegal
    assert others == []


@pytest.mark.asyncio
async def test_engine_over_sqlite_store(tmp_path) -> None:
    async with get_db(str(tmp_path / "engine.db")) as db:
        store = SqliteRecordStore(db)
        wp = WorkPackage(id="WP-1", project_id="P-1", phase=Phase.CLOSEOUT)
        await store.create(Collection.WORK_PACKAGE, wp)
        engine = PhaseGateEngine(store, recorder=store)

        outcome = await engine.execute(
            wp, Phase.COMPLETED, GateContext(require_closeout_docs=True), writer=store.writer("pm")
        )
        assert outcome.advanced is False
        assert outcome.trace.blocking_reasons == ("No closeout documentation",)

        await store.create(
            Collection.DOCUMENT,
            Document(id="DOC-1", project_id="P-1", tags=("closeout",), linked_work_package_ids=("WP-1",)),
        )
        outcome = await engine.execute(
            wp, Phase.COMPLETED, GateContext(require_closeout_docs=True), writer=store.writer("pm")
        )

        assert outcome.advanced is True
        assert (await store.get(Collection.WORK_PACKAGE, "WP-1")).phase == Phase.COMPLETED
        traces = await store.get_transition_traces("WP-1")
        assert [t.overall_pass for t in traces] == [True]


@pytest.mark.asyncio
async def test_schema_version_recorded(tmp_path) -> None:
    db_path = str(tmp_path / "version.db")
    async with get_db(db_path) as db:
        cursor = await db.execute("PRAGMA user_version")
        assert (await cursor.fetchone())[0] == SCHEMA_VERSION
    async with get_db(db_path) as db:
        assert await run_migrations(db) == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_newer_schema_rejected(tmp_path) -> None:
    db_path = str(tmp_path / "future.db")
    async with aiosqlite.connect(db_path) as db:
        await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
        await db.commit()

    with pytest.raises(StoreUnavailableError, match="newer"):
        async with get_db(db_path):
            pass


@pytest.mark.asyncio
async def test_lost_trace_table_does_not_undo_phase_change(tmp_path) -> None:
    async with get_db(str(tmp_path / "no-traces.db")) as db:
        store = SqliteRecordStore(db)
        wp = WorkPackage(id="WP-1", project_id="P-1", phase=Phase.CLOSEOUT)
        await store.create(Collection.WORK_PACKAGE, wp)
        await db.execute("DROP TABLE transition_traces")
        await db.commit()
        engine = PhaseGateEngine(store, recorder=store)

        outcome = await engine.execute(wp, Phase.COMPLETED, writer=store.writer("pm"))

        assert outcome.advanced is True
        assert outcome.work_package.version == 2
        assert (await store.get(Collection.WORK_PACKAGE, "WP-1")).phase == Phase.COMPLETED
        with pytest.raises(StoreUnavailableError):
            await store.get_transition_traces("WP-1")
