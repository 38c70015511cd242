"""End-to-end tests of the HTTP API against an in-memory database."""

from datetime import datetime, timedelta, timezone


def container_body(container_id="C1", zone="Lab", **overrides):
    body = {
        "containerId": container_id,
        "zone": zone,
        "width": 20,
        "depth": 20,
        "height": 20,
        "maxWeight": 50,
    }
    body.update(overrides)
    return body


def item_body(item_id="001", **overrides):
    body = {
        "itemId": item_id,
        "name": f"Item {item_id}",
        "width": 10,
        "depth": 10,
        "height": 10,
        "mass": 5,
        "priority": 50,
        "preferredZone": "Lab",
    }
    body.update(overrides)
    return body


def position(start, end):
    axes = ("width", "depth", "height")
    return {
        "startCoordinates": dict(zip(axes, start)),
        "endCoordinates": dict(zip(axes, end)),
    }


def test_placement_endpoint_prefers_zone(client):
    response = client.post("/api/placement", json={
        "items": [item_body(priority=80)],
        "containers": [container_body("C1", "Lab"), container_body("C2", "Storage")],
    })

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["placements"][0]["containerId"] == "C1"
    assert data["rearrangements"] == []
    assert data["unplacedItems"] == []
    assert data["spaceUtilization"] == {"C1": 12.5, "C2": 0.0}


def test_placement_endpoint_reports_fallback(client):
    response = client.post("/api/placement", json={
        "items": [item_body(priority=80, preferredZone="Medical")],
        "containers": [container_body("C1", "Lab"), container_body("C2", "Storage")],
    })

    rearrangement = response.json()["rearrangements"][0]
    assert rearrangement["action"] == "place"
    assert rearrangement["toContainer"] == "C1"
    assert rearrangement["fromContainer"] == ""


def test_placement_endpoint_rejects_bad_input(client):
    response = client.post("/api/placement", json={
        "items": [item_body(width=0)],
        "containers": [container_body()],
    })
    assert response.status_code == 422

    response = client.post("/api/placement", json={
        "items": [item_body(), item_body()],
        "containers": [container_body()],
    })
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_retrieval_plan_endpoint(client):
    response = client.post("/api/retrieval/plan", json={
        "itemId": "T",
        "containerSnapshot": {
            "container": container_body(),
            "items": [
                item_body("A", position=position((0, 0, 0), (10, 10, 10))),
                item_body("T", position=position((0, 10, 0), (10, 20, 10))),
            ],
        },
    })

    data = response.json()
    assert data["found"] is True
    assert data["item"]["itemId"] == "T"
    assert [s["action"] for s in data["retrievalSteps"]] == ["remove", "setAside", "retrieve", "placeBack"]

    response = client.post("/api/retrieval/plan", json={
        "itemId": "nope",
        "containerSnapshot": {"container": container_body(), "items": []},
    })
    assert response.json() == {"success": True, "found": False}


def test_container_crud(client):
    assert client.post("/api/containers", json=container_body()).status_code == 201
    assert client.post("/api/containers", json=container_body()).status_code == 400

    listed = client.get("/api/containers").json()
    assert [c["containerId"] for c in listed] == ["C1"]

    assert client.get("/api/containers/missing").status_code == 404

    client.post("/api/items", json=item_body(containerId="C1"))
    response = client.delete("/api/containers/C1")
    assert response.status_code == 400

    assert client.delete("/api/items/001").status_code == 200
    assert client.delete("/api/containers/C1").status_code == 200
    assert client.get("/api/containers").json() == []


def test_create_item_in_container_updates_aggregates(client):
    client.post("/api/containers", json=container_body())

    response = client.post("/api/items", json=item_body(containerId="C1"))

    assert response.status_code == 201
    item = response.json()["item"]
    assert item["containerId"] == "C1"
    assert item["position"] == position((0, 0, 0), (10, 10, 10))

    container = client.get("/api/containers/C1").json()["container"]
    assert container["currentWeight"] == 5
    assert container["itemCount"] == 1
    assert container["utilization"] == 12.5


def test_create_item_rejects_overlap(client):
    client.post("/api/containers", json=container_body())
    client.post("/api/items", json=item_body("001", containerId="C1", position=position((0, 0, 0), (10, 10, 10))))

    response = client.post(
        "/api/items",
        json=item_body("002", containerId="C1", position=position((5, 5, 5), (15, 15, 15))),
    )

    assert response.status_code == 400
    assert client.get("/api/items/002").status_code == 404


def test_create_item_over_weight_limit(client):
    client.post("/api/containers", json=container_body(maxWeight=4))

    response = client.post("/api/items", json=item_body(containerId="C1"))

    assert response.status_code == 409


def test_optimize_places_stored_items(client):
    client.post("/api/containers", json=container_body("C1", "Lab"))
    client.post("/api/containers", json=container_body("C2", "Storage"))
    client.post("/api/items", json=item_body("001", preferredZone="Lab"))
    client.post("/api/items", json=item_body("002", preferredZone="Medical"))

    response = client.post("/api/placement/optimize")

    data = response.json()
    assert data["success"] is True
    assert data["placements"] == 2
    assert data["rearrangements"] == 1
    assert client.get("/api/items/001").json()["item"]["containerId"] == "C1"
    container = client.get("/api/containers/C1").json()["container"]
    assert container["itemCount"] == 2

    again = client.post("/api/placement/optimize").json()
    assert again["success"] is False


def test_search_returns_retrieval_steps(client):
    client.post("/api/containers", json=container_body())
    client.post("/api/items", json=item_body("001", name="Water", position=position((0, 0, 0), (10, 10, 10)), containerId="C1"))
    client.post("/api/items", json=item_body("002", name="Food Packet", position=position((0, 10, 0), (10, 20, 10)), containerId="C1"))

    data = client.get("/api/search", params={"itemName": "food"}).json()

    assert data["found"] is True
    assert data["item"]["itemId"] == "002"
    assert [(s["action"], s["itemId"]) for s in data["retrievalSteps"]] == [
        ("remove", "001"),
        ("setAside", "001"),
        ("retrieve", "002"),
        ("placeBack", "001"),
    ]
    assert data["totalItems"] == 2

    missing = client.get("/api/search", params={"itemId": "999"}).json()
    assert missing["found"] is False
    assert client.get("/api/search").status_code == 400


def test_retrieve_uses_up_item(client):
    client.post("/api/items", json=item_body(usageLimit=1))

    response = client.post("/api/retrieve", json={"itemId": "001", "userId": "astro"})

    assert response.json() == {"success": True}
    item = client.get("/api/items/001").json()["item"]
    assert item["usesLeft"] == 0
    assert item["isWaste"] is True
    assert item["wasteReason"] == "Out of Uses"

    assert client.post("/api/retrieve", json={"itemId": "999", "userId": "astro"}).json() == {"success": False}


def test_place_moves_item_between_containers(client):
    client.post("/api/containers", json=container_body("C1"))
    client.post("/api/containers", json=container_body("C2"))
    client.post("/api/items", json=item_body(containerId="C1"))

    response = client.post("/api/place", json={
        "itemId": "001",
        "userId": "astro",
        "containerId": "C2",
        "position": position((10, 10, 10), (20, 20, 20)),
    })

    assert response.json() == {"success": True}
    c1 = client.get("/api/containers/C1").json()["container"]
    c2 = client.get("/api/containers/C2").json()["container"]
    assert (c1["itemCount"], c1["currentWeight"], c1["utilization"]) == (0, 0, 0)
    assert (c2["itemCount"], c2["currentWeight"], c2["utilization"]) == (1, 5, 12.5)

    outside = client.post("/api/place", json={
        "itemId": "001",
        "userId": "astro",
        "containerId": "C1",
        "position": position((15, 0, 0), (25, 10, 10)),
    })
    assert outside.status_code == 400
    assert client.get("/api/items/001").json()["item"]["containerId"] == "C2"


def test_identify_waste(client):
    client.post("/api/items", json=item_body("old", expiryDate="2020-01-01T00:00:00Z"))
    client.post("/api/items", json=item_body("empty", usageLimit=2, usesLeft=0))
    client.post("/api/items", json=item_body("fresh", usageLimit=2))

    data = client.post("/api/waste/identify").json()

    reasons = {w["itemId"]: w["reason"] for w in data["wasteItems"]}
    assert reasons == {"old": "Expired", "empty": "Out of Uses"}
    assert data["expiredCount"] == 1
    assert data["outOfUsesCount"] == 1

    assert client.post("/api/waste/identify").json()["totalCount"] == 0


def test_simulate_days(client):
    soon = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    client.post("/api/items", json=item_body("tool", usageLimit=5))
    client.post("/api/items", json=item_body("ration", usageLimit=2))
    client.post("/api/items", json=item_body("milk", expiryDate=soon))

    response = client.post("/api/simulate/day", json={
        "numOfDays": 2,
        "itemsToBeUsedPerDay": [{"itemId": "tool"}, {"itemId": "ration"}, {"itemId": "ghost"}],
    })

    changes = response.json()["changes"]
    used = {u["itemId"]: u["remainingUses"] for u in changes["itemsUsed"]}
    assert used == {"tool": 3, "ration": 0}
    assert [i["itemId"] for i in changes["itemsDepletedToday"]] == ["ration"]
    assert [i["itemId"] for i in changes["itemsExpired"]] == ["milk"]

    assert client.post("/api/simulate/day", json={"itemsToBeUsedPerDay": []}).status_code == 400


def test_logs_record_placements(client):
    client.post("/api/containers", json=container_body())
    client.post("/api/items?userId=astro", json=item_body(containerId="C1"))

    response = client.get("/api/logs", params={
        "startDate": "2000-01-01T00:00:00",
        "endDate": "2100-01-01T00:00:00",
        "actionType": "placement",
    })

    logs = response.json()["logs"]
    assert len(logs) == 1
    assert logs[0]["userId"] == "astro"
    assert logs[0]["itemId"] == "001"
    assert logs[0]["details"]["containerId"] == "C1"


def test_csv_import_and_export(client):
    containers_csv = "Container ID,Zone,Width,Depth,Height,Max Weight\ncontA,Lab,20,20,20,50\n"
    items_csv = (
        "Item ID,Name,Width,Depth,Height,Mass,Priority,Expiry Date,Usage Limit,Preferred Zone\n"
        "001,Food Packet,10,10,10,5,80,2035-01-01,30,Lab\n"
        "002,Broken,-1,10,10,5,80,,,Lab\n"
    )

    result = client.post("/api/import/containers", files={"file": ("c.csv", containers_csv.encode(), "text/csv")}).json()
    assert result["containersImported"] == 1

    result = client.post("/api/import/items", files={"file": ("i.csv", items_csv.encode(), "text/csv")}).json()
    assert result["itemsImported"] == 1
    assert result["errors"][0]["row"] == 2

    item = client.get("/api/items/001").json()["item"]
    assert item["usesLeft"] == 30

    client.post("/api/placement/optimize")
    content = client.get("/api/export/arrangement").json()["content"]
    lines = content.strip().splitlines()
    assert lines[0] == "Item ID,Container ID,Coordinates"
    assert lines[1] == '001,contA,"(0.0,0.0,0.0),(10.0,10.0,10.0)"'


def test_update_item_moves_between_containers(client):
    client.post("/api/containers", json=container_body("C1"))
    client.post("/api/containers", json=container_body("C2"))
    client.post("/api/items", json=item_body(containerId="C1"))

    response = client.put("/api/items/001", json={"containerId": "C2"})

    assert response.status_code == 200
    item = response.json()["item"]
    assert item["containerId"] == "C2"
    assert item["position"] == position((0, 0, 0), (10, 10, 10))
    c1 = client.get("/api/containers/C1").json()["container"]
    c2 = client.get("/api/containers/C2").json()["container"]
    assert (c1["itemCount"], c1["currentWeight"], c1["utilization"]) == (0, 0, 0)
    assert (c2["itemCount"], c2["currentWeight"], c2["utilization"]) == (1, 5, 12.5)


def test_update_item_resize_reapplies_aggregates(client):
    client.post("/api/containers", json=container_body())
    client.post("/api/items", json=item_body(containerId="C1"))

    item = client.put("/api/items/001", json={"width": 20, "mass": 8, "name": "Big"}).json()["item"]

    assert item["name"] == "Big"
    assert item["position"] == position((0, 0, 0), (20, 10, 10))
    container = client.get("/api/containers/C1").json()["container"]
    assert (container["itemCount"], container["currentWeight"], container["utilization"]) == (1, 8, 25)


def test_update_item_over_weight_limit_changes_nothing(client):
    client.post("/api/containers", json=container_body())
    client.post("/api/items", json=item_body(containerId="C1"))

    response = client.put("/api/items/001", json={"mass": 60})

    assert response.status_code == 409
    assert client.get("/api/items/001").json()["item"]["mass"] == 5
    assert client.get("/api/containers/C1").json()["container"]["currentWeight"] == 5


def test_update_item_marks_waste(client):
    client.post("/api/items", json=item_body())

    assert client.put("/api/items/001", json={"isWaste": True}).status_code == 400
    assert client.put("/api/items/001", json={"usesLeft": 3}).status_code == 200
    assert client.put("/api/items/001", json={"usageLimit": 2, "usesLeft": 3}).status_code == 400

    item = client.put("/api/items/001", json={"isWaste": True, "wasteReason": "Damaged"}).json()["item"]
    assert item["isWaste"] is True
    assert item["wasteReason"] == "Damaged"
    assert client.put("/api/items/999", json={"name": "x"}).status_code == 404


def test_update_container_keeps_stored_items_inside(client):
    client.post("/api/containers", json=container_body())
    client.post("/api/items", json=item_body(containerId="C1"))

    assert client.put("/api/containers/C1", json={"width": 5}).status_code == 400
    assert client.put("/api/containers/C1", json={"maxWeight": 1}).status_code == 400

    response = client.put("/api/containers/C1", json={"width": 10, "depth": 10, "height": 10, "zone": "Storage"})

    assert response.status_code == 200
    container = response.json()["container"]
    assert container["zone"] == "Storage"
    assert container["utilization"] == 100
    assert client.put("/api/containers/missing", json={"zone": "Lab"}).status_code == 404


def test_logs_filter_by_container_and_page(client):
    client.post("/api/containers", json=container_body("C1"))
    client.post("/api/containers", json=container_body("C2"))
    client.post("/api/items", json=item_body("001", containerId="C1"))
    client.post("/api/items", json=item_body("002", containerId="C1"))
    client.post("/api/items", json=item_body("003", containerId="C2"))
    window = {"startDate": "2000-01-01T00:00:00", "endDate": "2100-01-01T00:00:00"}

    data = client.get("/api/logs", params={**window, "containerId": "C1"}).json()
    assert [log["itemId"] for log in data["logs"]] == ["001", "002"]
    assert all(log["containerId"] == "C1" for log in data["logs"])
    assert data["pagination"]["total"] == 2

    data = client.get("/api/logs", params={**window, "limit": 2, "page": 2}).json()
    assert [log["itemId"] for log in data["logs"]] == ["003"]
    assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}


def test_search_by_name_treats_wildcards_literally(client):
    client.post("/api/items", json=item_body("001", name="1000 Juice", priority=90))
    client.post("/api/items", json=item_body("002", name="100% Juice", priority=10))

    data = client.get("/api/search", params={"itemName": "100%"}).json()

    assert data["item"]["itemId"] == "002"


def test_run_serves_app_on_configured_address(monkeypatch):
    import uvicorn

    from cargo_planner.core.settings import settings
    from cargo_planner.main import run

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    run()

    assert calls == [("cargo_planner.main:app", {"host": settings.HOST, "port": settings.PORT, "reload": False})]
