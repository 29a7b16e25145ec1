import pytest
from bson import ObjectId

from conftest import make_booking, make_listing, run
from manage import ProvisioningError, provision_admin
from routers.admin import booking_matches


@pytest.fixture
def marketplace(client, school, teacher):
    """One school with two listings, each booked once by the teacher."""
    school_headers, _ = school
    teacher_headers, _ = teacher
    listings = [
        make_listing(client, school_headers, price=1000),
        make_listing(client, school_headers, name="Main Auditorium", space_type="Auditorium", price=5000, status="inactive"),
    ]
    bookings = [make_booking(client, teacher_headers, l["id"], purpose="Science fair").json()["booking"] for l in listings]
    return listings, bookings


def test_admin_namespace_refuses_other_roles(client, school, teacher):
    for headers, _ in (school, teacher):
        assert client.get("/api/admin/stats", headers=headers).status_code == 403
    assert client.get("/api/admin/stats").status_code == 401


def test_stats(client, admin, marketplace):
    headers, _ = admin
    listings, bookings = marketplace
    client.put(f"/api/admin/bookings/{bookings[0]['id']}/status", json={"status": "confirmed"}, headers=headers)
    client.put(f"/api/admin/bookings/{bookings[1]['id']}/status", json={"status": "completed"}, headers=headers)

    body = client.get("/api/admin/stats", headers=headers).json()
    stats = body["stats"]
    assert stats["total_users"] == 2
    assert stats["total_teachers"] == 1
    assert stats["total_schools"] == 1
    assert stats["total_listings"] == 2
    assert stats["active_listings"] == 1
    assert stats["total_bookings"] == 2
    assert stats["pending_bookings"] == 0
    assert stats["confirmed_bookings"] == 1
    assert stats["total_revenue"] == 6000
    assert len(body["recent_bookings"]) == 2
    assert body["recent_bookings"][0]["teacher"]["email"] == "t@x.com"


def test_list_users_hides_admins_and_secrets(client, admin, school, teacher):
    headers, _ = admin
    users = client.get("/api/admin/users", headers=headers).json()["users"]
    assert {u["email"] for u in users} == {"s@x.com", "t@x.com"}
    for u in users:
        assert "password" not in u
        assert "reset_password_token" not in u

    schools = client.get("/api/admin/users", params={"role": "school"}, headers=headers).json()
    assert [u["email"] for u in schools["users"]] == ["s@x.com"]

    found = client.get("/api/admin/users", params={"search": "abc"}, headers=headers).json()
    assert [u["email"] for u in found["users"]] == ["s@x.com"]

    hidden = client.get("/api/admin/users", params={"role": "admin"}, headers=headers).json()
    assert hidden["count"] == 0


def test_delete_school_cascades(client, db, admin, school, teacher, marketplace):
    headers, _ = admin
    _, school_user = school
    teacher_headers, _ = teacher
    listings, bookings = marketplace

    res = client.delete(f"/api/admin/users/{school_user['id']}", headers=headers)
    assert res.status_code == 200

    public = client.get("/api/listings").json()["listings"]
    assert not any(l["id"] == listings[0]["id"] for l in public)
    assert run(db["listings"].count_documents({"owner": ObjectId(school_user["id"])})) == 0
    assert run(db["bookings"].count_documents({})) == 0
    assert client.get(f"/api/bookings/{bookings[0]['id']}", headers=teacher_headers).status_code == 404


def test_delete_teacher_cascades(client, db, admin, teacher, marketplace):
    headers, _ = admin
    _, teacher_user = teacher
    assert client.delete(f"/api/admin/users/{teacher_user['id']}", headers=headers).status_code == 200
    assert run(db["bookings"].count_documents({})) == 0
    assert run(db["listings"].count_documents({})) == 2


def test_admins_cannot_be_deleted(client, db, admin):
    headers, admin_user = admin
    other = run(provision_admin(db, "Second Admin", "admin2@eduspace.in", "Admin@1234"))
    assert client.delete(f"/api/admin/users/{other['_id']}", headers=headers).status_code == 403
    assert client.delete(f"/api/admin/users/{admin_user['id']}", headers=headers).status_code == 403
    assert run(db["users"].count_documents({"role": "admin"})) == 2


def test_delete_missing_user(client, admin):
    headers, _ = admin
    assert client.delete(f"/api/admin/users/{ObjectId()}", headers=headers).status_code == 404


def test_admin_listings_search_and_delete(client, db, admin, marketplace):
    headers, _ = admin
    listings, _ = marketplace
    found = client.get("/api/admin/listings", params={"search": "auditorium"}, headers=headers).json()
    assert [l["id"] for l in found["listings"]] == [listings[1]["id"]]
    assert found["listings"][0]["owner"]["school_name"] == "ABC"

    res = client.delete(f"/api/admin/listings/{listings[1]['id']}", headers=headers)
    assert res.json()["message"] == 'Listing "Main Auditorium" deleted successfully'
    assert run(db["bookings"].count_documents({"listing": ObjectId(listings[1]["id"])})) == 0
    assert run(db["bookings"].count_documents({})) == 1


def test_admin_bookings_filter_and_search(client, admin, marketplace):
    headers, _ = admin
    _, bookings = marketplace
    client.put(f"/api/admin/bookings/{bookings[0]['id']}/status", json={"status": "rejected"}, headers=headers)

    rejected = client.get("/api/admin/bookings", params={"status": "rejected"}, headers=headers).json()
    assert [b["id"] for b in rejected["bookings"]] == [bookings[0]["id"]]

    by_listing = client.get("/api/admin/bookings", params={"search": "MAIN aud"}, headers=headers).json()
    assert [b["id"] for b in by_listing["bookings"]] == [bookings[1]["id"]]

    by_purpose = client.get("/api/admin/bookings", params={"search": "science"}, headers=headers).json()
    assert by_purpose["count"] == 2


def test_admin_status_override_ignores_graph(client, admin, marketplace):
    headers, _ = admin
    _, bookings = marketplace
    for status in ("rejected", "confirmed", "pending", "completed"):
        res = client.put(f"/api/admin/bookings/{bookings[0]['id']}/status", json={"status": status}, headers=headers)
        assert res.status_code == 200
        assert res.json()["booking"]["status"] == status


def test_admin_delete_booking(client, admin, marketplace):
    headers, _ = admin
    _, bookings = marketplace
    assert client.delete(f"/api/admin/bookings/{bookings[0]['id']}", headers=headers).status_code == 200
    assert client.delete(f"/api/admin/bookings/{bookings[0]['id']}", headers=headers).status_code == 404


def test_booking_matches():
    booking = {
        "listing": {"name": "Physics Lab"},
        "teacher": {"name": "Tina", "email": "t@x.com"},
        "school": None,
        "purpose": "Exam",
    }
    assert booking_matches(booking, "physics")
    assert booking_matches(booking, "T@X")
    assert not booking_matches(booking, "abc")


def test_provision_admin_rejects_duplicates(db):
    run(provision_admin(db, "Root", "root@eduspace.in", "Admin@1234"))
    with pytest.raises(ProvisioningError):
        run(provision_admin(db, "Root", "ROOT@eduspace.in", "Admin@1234"))
