"""Unit tests for rebuilding cached paths from parent links."""
from __future__ import annotations

import pytest
from sqlalchemy import select, text, update

from conftest import Place
from treepath_service.core.database.hierarchy import PathCodec, RebuildEngine
from treepath_service.core.database.hierarchy.codec import parse_int_id
from treepath_service.core.database.hierarchy.rebuild import (
    BELOW_CYCLE,
    BELOW_MISSING_PARENT,
    BELOW_UNENCODABLE_ID,
    CYCLE,
    MISSING_PARENT,
    UNENCODABLE_ID,
)


async def stored_paths(session) -> dict[int, str]:
    result = await session.execute(select(Place.id, Place.path))
    return dict(result.all())


@pytest.fixture
def engine() -> RebuildEngine[Place]:
    return RebuildEngine(Place, PathCodec())


@pytest.mark.asyncio
async def test_rebuild_after_corrupting_every_path(db_session, world, places):
    """Garbage paths are recomputed from parent links alone."""
    expected = await stored_paths(db_session)
    await db_session.execute(update(Place).values(path="corrupt"))

    report = await places.rebuild_all()

    assert report.ok
    assert report.processed == 7
    assert report.updated == 7
    assert await stored_paths(db_session) == expected
    assert await world.box_hill.get_ancestors(db_session) == [
        world.australia,
        world.victoria,
        world.melbourne,
    ]


@pytest.mark.asyncio
async def test_rebuild_is_idempotent(db_session, world, places):
    await db_session.execute(update(Place).values(path="corrupt"))
    first = await places.rebuild_all()
    after_first = await stored_paths(db_session)

    second = await places.rebuild_all()

    assert second.processed == first.processed
    assert second.updated == 0
    assert await stored_paths(db_session) == after_first


@pytest.mark.asyncio
async def test_rebuild_matches_incremental_maintenance(db_session, world, places):
    """Paths kept by reparent cascades equal paths rebuilt from scratch."""
    await places.reparent(world.victoria.id, world.new_zealand.id)
    await places.reparent(world.nsw.id, world.melbourne.id)
    incremental = await stored_paths(db_session)

    await db_session.execute(update(Place).values(path="-"))
    report = await places.rebuild_all()

    assert report.ok
    assert await stored_paths(db_session) == incremental


@pytest.mark.asyncio
async def test_rebuild_reports_cycles_and_leaves_them_untouched(db_session, world, engine):
    """A parent cycle injected behind the engine's back is reported, not looped on."""
    m, b = world.melbourne.id, world.box_hill.id
    # Melbourne <-> Box Hill cycle; Victoria is unaffected
    await db_session.execute(
        text("UPDATE places SET parent_id = :b, path = 'stale-m' WHERE id = :m"), {"b": b, "m": m}
    )
    await db_session.execute(text("UPDATE places SET path = 'stale-b' WHERE id = :b"), {"b": b})
    extra = Place(name="Below cycle", parent_id=b, path="stale-x")
    db_session.add(extra)
    await db_session.flush()

    report = await engine.rebuild_all(db_session)

    errors = dict(report.errors)
    assert errors == {m: CYCLE, b: CYCLE, extra.id: BELOW_CYCLE}
    assert report.processed == 5
    paths = await stored_paths(db_session)
    assert paths[m] == "stale-m"
    assert paths[b] == "stale-b"
    assert paths[extra.id] == "stale-x"
    assert paths[world.victoria.id] == f"-{world.australia.id}-"


@pytest.mark.asyncio
async def test_rebuild_reports_missing_parents(db_session, world, engine):
    await db_session.execute(
        text("UPDATE places SET parent_id = 4242 WHERE id = :id"), {"id": world.nsw.id}
    )

    report = await engine.rebuild_all(db_session)

    assert dict(report.errors) == {
        world.nsw.id: MISSING_PARENT,
        world.sydney.id: BELOW_MISSING_PARENT,
    }
    assert report.failed_ids == {world.nsw.id, world.sydney.id}


@pytest.mark.asyncio
async def test_rebuild_self_parent_is_cycle(db_session, world, engine):
    await db_session.execute(
        text("UPDATE places SET parent_id = id WHERE id = :id"), {"id": world.new_zealand.id}
    )

    report = await engine.rebuild_all(db_session)

    assert report.errors == [(world.new_zealand.id, CYCLE)]


@pytest.mark.asyncio
async def test_rebuild_subtree_repairs_one_branch(db_session, world, places):
    await db_session.execute(update(Place).values(path="corrupt"))

    report = await places.rebuild_subtree(world.victoria.id)

    assert report.ok
    assert report.processed == 3
    paths = await stored_paths(db_session)
    a, v, m = world.australia.id, world.victoria.id, world.melbourne.id
    assert paths[v] == f"-{a}-"
    assert paths[m] == f"-{a}-{v}-"
    assert paths[world.box_hill.id] == f"-{a}-{v}-{m}-"
    # Outside the branch nothing was touched
    assert paths[world.sydney.id] == "corrupt"
    assert paths[a] == "corrupt"


@pytest.mark.asyncio
async def test_rebuild_subtree_reports_cycle(db_session, world, engine):
    await db_session.execute(
        text("UPDATE places SET parent_id = :m WHERE id = :v"),
        {"m": world.melbourne.id, "v": world.victoria.id},
    )

    report = await engine.rebuild_subtree(db_session, world.box_hill.id)

    assert report.errors == [(world.box_hill.id, BELOW_CYCLE)]
    assert report.processed == 0


@pytest.mark.asyncio
async def test_rebuild_empty_table(db_session, engine):
    report = await engine.rebuild_all(db_session)

    assert report.ok
    assert report.processed == 0


def codec_rejecting(*rejected: int) -> PathCodec:
    def parse(segment: str) -> int:
        node_id = parse_int_id(segment)
        if node_id in rejected:
            raise ValueError(f"id {node_id} is reserved")
        return node_id

    return PathCodec(parse_id=parse)


@pytest.mark.asyncio
async def test_rebuild_all_reports_rows_below_unencodable_id(db_session, world):
    engine = RebuildEngine(Place, codec_rejecting(world.melbourne.id))

    report = await engine.rebuild_all(db_session)

    assert dict(report.errors) == {
        world.melbourne.id: UNENCODABLE_ID,
        world.box_hill.id: BELOW_UNENCODABLE_ID,
    }
    assert report.processed == 5


@pytest.mark.asyncio
async def test_rebuild_subtree_reports_rows_below_unencodable_id(db_session, world):
    engine = RebuildEngine(Place, codec_rejecting(world.melbourne.id))

    report = await engine.rebuild_subtree(db_session, world.victoria.id)

    assert dict(report.errors) == {
        world.melbourne.id: UNENCODABLE_ID,
        world.box_hill.id: BELOW_UNENCODABLE_ID,
    }
    assert report.processed == 1
