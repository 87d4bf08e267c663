"""
Tests for the split endpoints.

Uses the default Ready receipt (Pasta 10.00, Pizza 20.00) unless a test
needs different items.
"""

import pytest


def _split(client, headers, receipt_id, payload):
    return client.post(f"/api/receipts/{receipt_id}/splits", json=payload, headers=headers)


def _by_user(summary):
    return {u["userId"]: u for u in summary["users"]}


@pytest.fixture
def receipt(alice, ready_receipt):
    return ready_receipt(alice["headers"], tax=3.00, tip=6.00)


@pytest.fixture
def items(receipt):
    pasta, pizza = receipt["items"]
    return pasta["id"], pizza["id"]


class TestEqualSplit:
    """Test even splits across participants."""

    def test_equal_split_between_two(self, client, alice, bob, receipt, items):
        pasta_id, pizza_id = items

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": [alice["user"]["id"], bob["user"]["id"]]},
        )

        assert response.status_code == 201
        split = response.json()
        assert split["splitType"] == "Equal"
        assert split["createdBy"] == alice["user"]["id"]
        assignments = [(a["itemId"], a["userId"], a["amount"]) for a in split["assignments"]]
        assert assignments == [
            (pasta_id, alice["user"]["id"], 5.0),
            (pasta_id, bob["user"]["id"], 5.0),
            (pizza_id, alice["user"]["id"], 10.0),
            (pizza_id, bob["user"]["id"], 10.0),
        ]
        assert all(a["percentage"] == 0.5 for a in split["assignments"])

    def test_equal_split_remainder_goes_to_last(self, client, alice, bob, register_user, ready_receipt):
        carol = register_user("carol@example.com", first_name="Carol")
        receipt = ready_receipt(alice["headers"], items=[{"name": "Cake", "price": 10}])
        participants = [alice["user"]["id"], bob["user"]["id"], carol["user"]["id"]]

        split = _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": participants},
        ).json()

        assert [a["amount"] for a in split["assignments"]] == [3.33, 3.33, 3.34]

    def test_equal_split_needs_participants(self, client, alice, receipt):
        response = _split(client, alice["headers"], receipt["id"], {"splitType": "Equal"})

        assert response.status_code == 400

    def test_summary_shares_tax_and_tip(self, client, alice, bob, receipt):
        split = _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": [alice["user"]["id"], bob["user"]["id"]]},
        ).json()

        response = client.get(f"/api/splits/{split['id']}/summary", headers=alice["headers"])

        assert response.status_code == 200
        summary = response.json()
        assert summary["balanced"] is True
        assert summary["receiptTotal"] == 39.0
        assert summary["grandTotal"] == 39.0
        assert summary["difference"] == 0
        users = _by_user(summary)
        for user in (alice, bob):
            share = users[user["user"]["id"]]
            assert share["itemsSubtotal"] == 15.0
            assert share["tax"] == 1.5
            assert share["tip"] == 3.0
            assert share["total"] == 19.5
        assert users[bob["user"]["id"]]["email"] == "bob@example.com"


class TestItemSplits:
    """Test ByItem, Percentage and Custom splits."""

    def test_by_item(self, client, alice, bob, receipt, items):
        pasta_id, pizza_id = items
        split = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "ByItem",
                "items": [
                    {"itemId": pasta_id, "shares": [{"userId": alice["user"]["id"]}]},
                    {"itemId": pizza_id, "shares": [{"userId": bob["user"]["id"]}]},
                ],
            },
        ).json()

        summary = client.get(
            f"/api/splits/{split['id']}/summary", headers=alice["headers"]
        ).json()

        users = _by_user(summary)
        assert users[alice["user"]["id"]]["total"] == 13.0
        assert users[bob["user"]["id"]]["total"] == 26.0
        assert users[alice["user"]["id"]]["tax"] == 1.0
        assert users[bob["user"]["id"]]["tip"] == 4.0

    def test_by_item_requires_every_item(self, client, alice, receipt, items):
        pasta_id, _ = items

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "ByItem",
                "items": [{"itemId": pasta_id, "shares": [{"userId": alice["user"]["id"]}]}],
            },
        )

        assert response.status_code == 400

    def test_percentage(self, client, alice, bob, receipt, items):
        pasta_id, pizza_id = items
        a, b = alice["user"]["id"], bob["user"]["id"]

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "Percentage",
                "items": [
                    {
                        "itemId": pasta_id,
                        "shares": [{"userId": a, "percentage": 0.5}, {"userId": b, "percentage": 0.5}],
                    },
                    {
                        "itemId": pizza_id,
                        "shares": [{"userId": a, "percentage": 0.25}, {"userId": b, "percentage": 0.75}],
                    },
                ],
            },
        )

        assert response.status_code == 201
        amounts = [(x["userId"], x["amount"]) for x in response.json()["assignments"]]
        assert amounts == [(a, 5.0), (b, 5.0), (a, 5.0), (b, 15.0)]

    def test_percentage_must_total_one(self, client, alice, bob, receipt, items):
        pasta_id, pizza_id = items
        a, b = alice["user"]["id"], bob["user"]["id"]

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "Percentage",
                "items": [
                    {
                        "itemId": pasta_id,
                        "shares": [{"userId": a, "percentage": 0.5}, {"userId": b, "percentage": 0.3}],
                    },
                    {"itemId": pizza_id, "shares": [{"userId": a, "percentage": 1}]},
                ],
            },
        )

        assert response.status_code == 400

    def test_custom(self, client, alice, bob, receipt, items):
        pasta_id, pizza_id = items
        a, b = alice["user"]["id"], bob["user"]["id"]

        split = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "Custom",
                "items": [
                    {
                        "itemId": pasta_id,
                        "shares": [{"userId": a, "amount": 7}, {"userId": b, "amount": 3}],
                    },
                    {"itemId": pizza_id, "shares": [{"userId": b, "amount": 20}]},
                ],
            },
        ).json()

        summary = client.get(
            f"/api/splits/{split['id']}/summary", headers=alice["headers"]
        ).json()

        users = _by_user(summary)
        assert users[a]["itemsSubtotal"] == 7.0
        assert users[b]["itemsSubtotal"] == 23.0
        assert sum(u["total"] for u in summary["users"]) == pytest.approx(39.0)

    def test_custom_summary_reports_difference(self, client, alice, bob, ready_receipt):
        receipt = ready_receipt(
            alice["headers"],
            items=[{"name": "Soup", "price": 10}, {"name": "Salad", "price": 10}],
            tax=1.00,
        )
        a, b = alice["user"]["id"], bob["user"]["id"]
        shares = [{"userId": a, "amount": 5.01}, {"userId": b, "amount": 5.00}]

        split = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "Custom",
                "items": [{"itemId": item["id"], "shares": shares} for item in receipt["items"]],
            },
        ).json()

        summary = client.get(
            f"/api/splits/{split['id']}/summary", headers=alice["headers"]
        ).json()

        assert summary["balanced"] is True
        assert summary["receiptTotal"] == 21.0
        assert summary["grandTotal"] == 21.02
        assert summary["difference"] == 0.02

    def test_custom_amounts_must_match_item(self, client, alice, receipt, items):
        pasta_id, pizza_id = items
        a = alice["user"]["id"]

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "Custom",
                "items": [
                    {"itemId": pasta_id, "shares": [{"userId": a, "amount": 9}]},
                    {"itemId": pizza_id, "shares": [{"userId": a, "amount": 20}]},
                ],
            },
        )

        assert response.status_code == 400

    def test_unknown_participant(self, client, alice, receipt):
        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": [alice["user"]["id"], "ghost"]},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Unknown participants"


class TestSplitRules:
    """Test receipt state, ownership and group scoping."""

    def test_receipt_must_be_ready(self, client, alice, upload_receipt):
        receipt = upload_receipt(alice["headers"])

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": [alice["user"]["id"]]},
        )

        assert response.status_code == 409

    def test_only_owner_can_split(self, client, alice, bob, receipt):
        response = _split(
            client,
            bob["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": [bob["user"]["id"]]},
        )

        assert response.status_code == 404

    def test_group_members_are_default_participants(self, client, alice, bob, receipt):
        group = client.post(
            "/api/groups", json={"name": "Dinner"}, headers=alice["headers"]
        ).json()
        client.post(
            f"/api/groups/{group['id']}/members",
            json={"email": "bob@example.com"},
            headers=alice["headers"],
        )

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "groupId": group["id"]},
        )

        assert response.status_code == 201
        split = response.json()
        assert split["groupId"] == group["id"]
        assert {a["userId"] for a in split["assignments"]} == {
            alice["user"]["id"],
            bob["user"]["id"],
        }

    def test_group_participants_must_be_members(self, client, alice, bob, receipt):
        group = client.post(
            "/api/groups", json={"name": "Solo"}, headers=alice["headers"]
        ).json()

        response = _split(
            client,
            alice["headers"],
            receipt["id"],
            {
                "splitType": "Equal",
                "groupId": group["id"],
                "participants": [alice["user"]["id"], bob["user"]["id"]],
            },
        )

        assert response.status_code == 400

    def test_invalid_split_type(self, client, alice, receipt):
        response = _split(client, alice["headers"], receipt["id"], {"splitType": "Random"})

        assert response.status_code == 400


class TestManageSplits:
    """Test listing, viewing, replacing and deleting splits."""

    @pytest.fixture
    def split(self, client, alice, bob, receipt):
        return _split(
            client,
            alice["headers"],
            receipt["id"],
            {"splitType": "Equal", "participants": [alice["user"]["id"], bob["user"]["id"]]},
        ).json()

    def test_list_for_receipt(self, client, alice, receipt, split):
        response = client.get(f"/api/receipts/{receipt['id']}/splits", headers=alice["headers"])

        assert response.status_code == 200
        assert [s["id"] for s in response.json()] == [split["id"]]

    def test_participant_can_view(self, client, bob, split):
        assert client.get(f"/api/splits/{split['id']}", headers=bob["headers"]).status_code == 200
        assert (
            client.get(f"/api/splits/{split['id']}/summary", headers=bob["headers"]).status_code
            == 200
        )

    def test_outsider_cannot_view(self, client, register_user, split):
        carol = register_user("carol@example.com", first_name="Carol")

        response = client.get(f"/api/splits/{split['id']}", headers=carol["headers"])

        assert response.status_code == 404

    def test_participant_cannot_delete(self, client, bob, split):
        response = client.delete(f"/api/splits/{split['id']}", headers=bob["headers"])

        assert response.status_code == 404

    def test_replace(self, client, alice, bob, split, items):
        pasta_id, pizza_id = items

        response = client.put(
            f"/api/splits/{split['id']}",
            json={
                "splitType": "ByItem",
                "items": [
                    {"itemId": pasta_id, "shares": [{"userId": bob["user"]["id"]}]},
                    {"itemId": pizza_id, "shares": [{"userId": bob["user"]["id"]}]},
                ],
            },
            headers=alice["headers"],
        )

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == split["id"]
        assert body["splitType"] == "ByItem"
        assert [a["userId"] for a in body["assignments"]] == [bob["user"]["id"]] * 2

        summary = client.get(f"/api/splits/{split['id']}/summary", headers=alice["headers"]).json()
        assert [u["userId"] for u in summary["users"]] == [bob["user"]["id"]]
        assert summary["users"][0]["total"] == 39.0

    def test_delete_unlocks_items(self, client, alice, receipt, split):
        response = client.delete(f"/api/splits/{split['id']}", headers=alice["headers"])

        assert response.status_code == 204
        assert client.get(f"/api/splits/{split['id']}", headers=alice["headers"]).status_code == 404
        edit = client.put(
            f"/api/receipts/{receipt['id']}/items",
            json={"items": [{"name": "Soup", "price": 6}]},
            headers=alice["headers"],
        )
        assert edit.status_code == 200
