"""Unit tests for parent assignment validation."""
from __future__ import annotations

import pytest
from sqlalchemy import update

from conftest import Place
from treepath_service.core.database.exceptions import InvalidParentError, MalformedPathError
from treepath_service.core.database.hierarchy import HierarchyValidator, PathCodec


@pytest.fixture
def validator() -> HierarchyValidator[Place]:
    return HierarchyValidator(Place, PathCodec())


@pytest.mark.asyncio
async def test_self_parent_rejected(db_session, world, validator):
    """A node can never be its own parent."""
    with pytest.raises(InvalidParentError) as exc_info:
        await validator.validate(db_session, world.victoria.id, world.victoria.id)

    assert exc_info.value.reason == InvalidParentError.SELF_PARENT
    assert exc_info.value.node_id == world.victoria.id


@pytest.mark.asyncio
async def test_none_parent_accepted(db_session, world, validator):
    """Moving to the root level is always legal."""
    assert await validator.validate(db_session, world.melbourne.id, None) is None


@pytest.mark.asyncio
async def test_descendant_parent_is_cycle(db_session, world, validator):
    """Australia cannot move under its own grandchild Melbourne."""
    with pytest.raises(InvalidParentError) as exc_info:
        await validator.validate(db_session, world.australia.id, world.melbourne.id)

    assert exc_info.value.reason == InvalidParentError.CYCLE


@pytest.mark.asyncio
async def test_direct_child_parent_is_cycle(db_session, world, validator):
    with pytest.raises(InvalidParentError) as exc_info:
        await validator.validate(db_session, world.victoria.id, world.melbourne.id)

    assert exc_info.value.reason == InvalidParentError.CYCLE


@pytest.mark.asyncio
async def test_missing_parent_rejected(db_session, world, validator):
    with pytest.raises(InvalidParentError) as exc_info:
        await validator.validate(db_session, world.victoria.id, 9999)

    assert exc_info.value.reason == InvalidParentError.PARENT_NOT_FOUND


@pytest.mark.asyncio
async def test_unrelated_parent_returns_loaded_row(db_session, world, validator):
    parent = await validator.validate(db_session, world.victoria.id, world.new_zealand.id)
    assert parent is world.new_zealand


@pytest.mark.asyncio
async def test_new_node_skips_cycle_check(db_session, world, validator):
    """A node that is not stored yet has no descendants to collide with."""
    parent = await validator.validate(db_session, None, world.sydney.id)
    assert parent is world.sydney


@pytest.mark.asyncio
async def test_cycle_check_uses_exact_tokens(db_session, places):
    """Node 12 is not an ancestor of a node whose path mentions 123."""
    for index in range(1, 125):
        await places.create_node(name=f"n{index}")
    await places.commit()

    # Hand-place node 124 under 123 so its path is "-123-"
    await db_session.execute(update(Place).where(Place.id == 124).values(parent_id=123, path="-123-"))
    await db_session.commit()

    validator = HierarchyValidator(Place, PathCodec())
    parent = await validator.validate(db_session, 12, 124)
    assert parent.id == 124

    with pytest.raises(InvalidParentError) as exc_info:
        await validator.validate(db_session, 123, 124)
    assert exc_info.value.reason == InvalidParentError.CYCLE


@pytest.mark.asyncio
async def test_corrupt_parent_path_propagates(db_session, world, validator):
    """A corrupt path is an error, never 'no ancestors'."""
    await db_session.execute(update(Place).where(Place.id == world.nsw.id).values(path="corrupt"))
    assert world.nsw.path == "corrupt"

    with pytest.raises(MalformedPathError):
        await validator.validate(db_session, world.victoria.id, world.nsw.id)
