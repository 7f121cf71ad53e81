"""Move-card tests — the cross-column transaction and its rejections."""

import uuid

import pytest
from sqlalchemy import select

from conftest import create_board, create_card, create_column, get_board
from trellone.db.models import Card, Column, Event

MOVE_URL = "/api/v1/boards/supports/moving-card"


@pytest.fixture()
async def layout(client, alice):
    """Board with C1 = [K1, K2] and C2 = [K3]."""
    board = await create_board(client, alice)
    c1 = await create_column(client, alice, board["id"], "C1")
    c2 = await create_column(client, alice, board["id"], "C2")
    k1 = await create_card(client, alice, c1["id"], "K1")
    k2 = await create_card(client, alice, c1["id"], "K2")
    k3 = await create_card(client, alice, c2["id"], "K3")
    return {
        "board": board["id"],
        "C1": c1["id"],
        "C2": c2["id"],
        "K1": k1["id"],
        "K2": k2["id"],
        "K3": k3["id"],
    }


def move_body(ids, card, prev_col, prev_order, next_col, next_order):
    return {
        "current_card_id": ids[card],
        "prev_column_id": ids[prev_col],
        "prev_card_order_ids": [ids[k] for k in prev_order],
        "next_column_id": ids[next_col],
        "next_card_order_ids": [ids[k] for k in next_order],
    }


@pytest.mark.asyncio
async def test_move_card_between_columns(client, db_session, alice, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3", "K1"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["message"] == "Move card to different column successfully"
    assert data["result"]["card"]["column_id"] == layout["C2"]
    assert data["result"]["prev_column"]["card_order_ids"] == [layout["K2"]]
    assert data["result"]["next_column"]["card_order_ids"] == [layout["K3"], layout["K1"]]

    detail = await get_board(client, alice, layout["board"])
    c1, c2 = detail["columns"]
    assert [c["title"] for c in c1["cards"]] == ["K2"]
    assert [c["title"] for c in c2["cards"]] == ["K3", "K1"]

    # Persisted rows agree with the response
    card = await db_session.get(Card, uuid.UUID(layout["K1"]))
    assert str(card.column_id) == layout["C2"]

    events = (
        await db_session.execute(select(Event).where(Event.type == "card.moved"))
    ).scalars().all()
    assert len(events) == 1
    assert events[0].data["card_id"] == layout["K1"]
    assert events[0].data["next_card_order_ids"] == [layout["K3"], layout["K1"]]


@pytest.mark.asyncio
async def test_move_card_to_top_of_empty_column(client, alice, layout):
    board = layout["board"]
    empty = await create_column(client, alice, board, "Empty")
    layout = {**layout, "C3": empty["id"]}

    body = move_body(layout, "K3", "C2", [], "C3", ["K3"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["result"]["prev_column"]["card_order_ids"] == []


@pytest.mark.asyncio
async def test_reorder_within_column(client, alice, layout):
    body = move_body(layout, "K2", "C1", ["K2", "K1"], "C1", ["K2", "K1"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["result"]["card"]["column_id"] == layout["C1"]

    detail = await get_board(client, alice, layout["board"])
    assert [c["title"] for c in detail["columns"][0]["cards"]] == ["K2", "K1"]


@pytest.mark.asyncio
async def test_stale_prev_order_is_rejected(client, db_session, alice, layout):
    # Client still thinks C1 had only K1
    body = move_body(layout, "K1", "C1", [], "C2", ["K3", "K1"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 409
    assert r.json()["message"] == "Card order ids are out of date"

    column = await db_session.get(Column, uuid.UUID(layout["C2"]))
    assert column.card_order_ids == [layout["K3"]]


@pytest.mark.asyncio
async def test_next_order_missing_moved_card(client, alice, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_card_not_in_prev_column(client, alice, layout):
    body = move_body(layout, "K3", "C1", ["K1", "K2"], "C2", ["K3"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_replayed_move_is_rejected(client, alice, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3", "K1"])
    assert (await client.put(MOVE_URL, json=body, headers=alice.headers)).status_code == 200
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_duplicate_ids_in_order(client, alice, layout):
    body = move_body(layout, "K1", "C1", ["K2", "K2"], "C2", ["K3", "K1"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 422
    assert "prev_card_order_ids" in r.json()["errors"]


@pytest.mark.asyncio
async def test_malformed_ids(client, alice, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3", "K1"])

    r = await client.put(MOVE_URL, json={**body, "next_column_id": "bogus"}, headers=alice.headers)
    assert r.status_code == 422
    assert r.json()["message"] == "Invalid column id"
    assert "next_column_id" in r.json()["errors"]

    r = await client.put(MOVE_URL, json={**body, "current_card_id": "bogus"}, headers=alice.headers)
    assert r.status_code == 422
    assert r.json()["message"] == "Invalid card id"

    r = await client.put(
        MOVE_URL, json={**body, "next_card_order_ids": ["bogus"]}, headers=alice.headers
    )
    assert r.status_code == 422
    assert "next_card_order_ids" in r.json()["errors"]


@pytest.mark.asyncio
async def test_missing_field_is_validation_error(client, alice, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3", "K1"])
    del body["prev_card_order_ids"]
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 422
    assert "prev_card_order_ids" in r.json()["errors"]


@pytest.mark.asyncio
async def test_cross_board_move_is_rejected(client, alice, layout):
    other = await create_board(client, alice, "Other")
    foreign = await create_column(client, alice, other["id"], "Foreign")

    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K1"])
    body["next_column_id"] = foreign["id"]
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 422
    assert r.json()["message"] == "Invalid column id"


@pytest.mark.asyncio
async def test_move_into_deleted_column(client, alice, layout):
    r = await client.delete(f"/api/v1/columns/{layout['C2']}", headers=alice.headers)
    assert r.status_code == 200
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K1"])
    r = await client.put(MOVE_URL, json=body, headers=alice.headers)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_non_member_cannot_move(client, alice, bob, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3", "K1"])
    r = await client.put(MOVE_URL, json=body, headers=bob.headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Board not found"


@pytest.mark.asyncio
async def test_move_requires_authentication(client, layout):
    body = move_body(layout, "K1", "C1", ["K2"], "C2", ["K3", "K1"])
    r = await client.put(MOVE_URL, json=body)
    assert r.status_code == 401
