import pytest
from bson import ObjectId

from conftest import LISTING, make_booking, make_listing, run, signup
from routers.listings import build_listing_query


def test_create_sets_owner_from_caller(client, school):
    headers, user = school
    listing = make_listing(client, headers, owner="someone-else")
    assert listing["owner"] == user["id"]
    assert listing["status"] == "active"
    assert listing["availability"] == "Both"
    assert listing["rating"] == 0


def test_only_schools_create_listings(client, teacher):
    headers, _ = teacher
    res = client.post("/api/listings", json=LISTING, headers=headers)
    assert res.status_code == 403


def test_create_requires_authentication(client):
    assert client.post("/api/listings", json=LISTING).status_code == 401


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"name": "   "}, "name"),
        ({"description": ""}, "description"),
        ({"location": ""}, "location"),
        ({"space_type": "Swimming Pool"}, "space_type"),
        ({"capacity": 0}, "capacity"),
        ({"price": -1}, "price"),
    ],
)
def test_create_validation(client, school, overrides, field):
    headers, _ = school
    res = client.post("/api/listings", json={**LISTING, **overrides}, headers=headers)
    assert res.status_code == 400
    assert field in {e["field"] for e in res.json()["errors"]}


def test_public_list_only_shows_active_with_owner(client, school):
    headers, _ = school
    active = make_listing(client, headers)
    make_listing(client, headers, name="Old Hall", status="inactive")
    res = client.get("/api/listings")
    assert res.status_code == 200
    body = res.json()
    assert [l["id"] for l in body["listings"]] == [active["id"]]
    owner = body["listings"][0]["owner"]
    assert owner["school_name"] == "ABC"
    assert "address" not in owner
    assert "password" not in owner


def test_public_filters_are_anded(client, school):
    headers, _ = school
    make_listing(client, headers, name="Small Room", space_type="Classroom", capacity=20, price=500, location="Pune")
    big = make_listing(client, headers, name="Big Room", space_type="Classroom", capacity=200, price=3000, location="Mumbai")
    make_listing(client, headers, name="Lab", space_type="Laboratory", capacity=200, price=3000, location="Mumbai")

    res = client.get("/api/listings", params={"space_type": "Classroom", "min_capacity": 100, "max_price": 5000, "location": "mum"})
    assert [l["id"] for l in res.json()["listings"]] == [big["id"]]

    res = client.get("/api/listings", params={"space_type": "All", "min_price": 1000})
    assert res.json()["count"] == 2


def test_build_query_uses_text_search_and_escapes_location():
    query = build_listing_query(location="a.b", search="physics lab")
    assert query["$text"] == {"$search": "physics lab"}
    assert query["location"]["$regex"] == r"a\.b"
    assert query["status"] == "active"


def test_get_one_returns_any_status_with_address(client, school):
    headers, _ = school
    listing = make_listing(client, headers, status="inactive")
    res = client.get(f"/api/listings/{listing['id']}")
    assert res.status_code == 200
    assert res.json()["listing"]["owner"]["address"] == "Andheri West"


def test_get_one_missing_and_invalid(client):
    assert client.get("/api/listings/507f1f77bcf86cd799439011").status_code == 404
    assert client.get("/api/listings/not-an-id").status_code == 400


def test_my_listings(client, school):
    headers, _ = school
    make_listing(client, headers)
    make_listing(client, headers, status="pending")
    other, _ = signup(client, "other@x.com", role="school")
    make_listing(client, other)
    res = client.get("/api/listings/my-listings", headers=headers)
    assert res.json()["count"] == 2


def test_update_merges_and_revalidates(client, school):
    headers, _ = school
    listing = make_listing(client, headers)
    res = client.put(f"/api/listings/{listing['id']}", json={"price": 1500, "status": "inactive"}, headers=headers)
    assert res.status_code == 200
    updated = res.json()["listing"]
    assert updated["price"] == 1500
    assert updated["status"] == "inactive"
    assert updated["name"] == LISTING["name"]
    assert updated["owner"] == listing["owner"]

    bad = client.put(f"/api/listings/{listing['id']}", json={"capacity": 0}, headers=headers)
    assert bad.status_code == 400
    assert client.get(f"/api/listings/{listing['id']}").json()["listing"]["capacity"] == LISTING["capacity"]


def test_update_and_delete_need_ownership(client, school):
    headers, _ = school
    listing = make_listing(client, headers)
    other, _ = signup(client, "other@x.com", role="school")
    assert client.put(f"/api/listings/{listing['id']}", json={"price": 1}, headers=other).status_code == 403
    assert client.delete(f"/api/listings/{listing['id']}", headers=other).status_code == 403


def test_delete_removes_bookings(client, db, school, teacher):
    headers, _ = school
    teacher_headers, _ = teacher
    listing = make_listing(client, headers)
    keep = make_listing(client, headers, name="Other Room")
    for _ in range(2):
        assert make_booking(client, teacher_headers, listing["id"]).status_code == 201
    assert make_booking(client, teacher_headers, keep["id"]).status_code == 201

    res = client.delete(f"/api/listings/{listing['id']}", headers=headers)
    assert res.status_code == 200
    assert client.get(f"/api/listings/{listing['id']}").status_code == 404
    assert run(db["bookings"].count_documents({"listing": ObjectId(listing["id"])})) == 0
    assert run(db["bookings"].count_documents({"listing": ObjectId(keep["id"])})) == 1
