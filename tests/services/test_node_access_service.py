from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.database.crud.node import _insert_for
from app.database.models import UserNodeAccess
from app.services import node_access_service
from app.services.billing_errors import NodeNotFoundError


async def test_grant_is_idempotent(db, make_user, make_node, make_subscription, load_all):
    user_id = await make_user()
    node_ids = [await make_node(), await make_node()]
    subscription_id = await make_subscription(user_id)
    expires = datetime.now(UTC) + timedelta(days=30)

    for _ in range(2):
        touched = await node_access_service.grant_node_access(
            db, user_id=user_id, subscription_id=subscription_id, expired_at=expires
        )
        await db.commit()
        assert touched == 2

    grants = await load_all(UserNodeAccess, user_id=user_id)
    assert sorted(grant.node_id for grant in grants) == sorted(node_ids)
    assert all(grant.expired_at == expires for grant in grants)


async def test_regrant_overwrites_subscription_and_expiry_in_place(
    db, make_user, make_node, make_subscription, load_all
):
    user_id = await make_user()
    await make_node()
    first_id = await make_subscription(user_id)
    second_id = await make_subscription(user_id)
    now = datetime.now(UTC)

    await node_access_service.grant_node_access(
        db, user_id=user_id, subscription_id=first_id, expired_at=now + timedelta(days=5)
    )
    await db.commit()
    [before] = await load_all(UserNodeAccess, user_id=user_id)

    await node_access_service.grant_node_access(
        db, user_id=user_id, subscription_id=second_id, expired_at=now + timedelta(days=60)
    )
    await db.commit()
    [after] = await load_all(UserNodeAccess, user_id=user_id)

    assert after.id == before.id
    assert after.subscription_id == second_id
    assert after.expired_at == now + timedelta(days=60)


async def test_grant_skips_inactive_nodes(db, make_user, make_node, make_subscription, load_all):
    user_id = await make_user()
    active_id = await make_node()
    await make_node(is_active=False)
    subscription_id = await make_subscription(user_id)

    await node_access_service.grant_node_access(
        db, user_id=user_id, subscription_id=subscription_id, expired_at=datetime.now(UTC) + timedelta(days=1)
    )
    await db.commit()

    assert [grant.node_id for grant in await load_all(UserNodeAccess, user_id=user_id)] == [active_id]


async def test_check_access_respects_grant_expiry(db, make_user, make_node, make_subscription):
    user_id = await make_user()
    node_id = await make_node()
    subscription_id = await make_subscription(user_id)

    assert await node_access_service.check_user_node_access(db, user_id, node_id) is False

    await node_access_service.grant_node_access(
        db, user_id=user_id, subscription_id=subscription_id, expired_at=datetime.now(UTC) - timedelta(seconds=1)
    )
    await db.commit()

    assert await node_access_service.check_user_node_access(db, user_id, node_id) is False


async def test_list_nodes_filters_by_location_and_protocol(db, make_node):
    frankfurt = await make_node(location='Frankfurt', protocol='vless')
    await make_node(location='Frankfurt', protocol='trojan')
    await make_node(location='Amsterdam', protocol='vless')
    await make_node(location='Frankfurt', protocol='vless', is_active=False)

    nodes = await node_access_service.list_nodes(db, location='Frankfurt', protocol='vless')

    assert [node.id for node in nodes] == [frankfurt]
    assert len(await node_access_service.list_nodes(db)) == 3


async def test_get_unknown_node(db):
    with pytest.raises(NodeNotFoundError) as exc:
        await node_access_service.get_node(db, 42)

    assert exc.value.detail['error_code'] == 'NODE_NOT_FOUND'


def test_grant_upsert_rejects_unsupported_backend():
    db = MagicMock()
    db.get_bind.return_value = SimpleNamespace(dialect=SimpleNamespace(name='mysql'))

    with pytest.raises(RuntimeError, match='PostgreSQL or SQLite'):
        _insert_for(db)
