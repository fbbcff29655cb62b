# tests/test_users.py
import uuid

from auth_utils import verify_password
from models.models import (
    Contact as ContactModel,
    Gallery as GalleryModel,
    Media as MediaModel,
    SharedGallery,
    User as UserModel,
    utcnow,
)


# =====================================================================================
# ==                                 PROFILE TESTS                                   ==
# =====================================================================================

def test_read_profile(client, user, auth_headers):
    response = client.get("/api/users/profile", headers=auth_headers(user))

    assert response.status_code == 200
    profile = response.json()["user"]
    assert profile["email"] == user.email
    assert profile["isEmailVerified"] is True
    assert profile["isActive"] is True
    assert "hashedPassword" not in profile
    assert "emailVerificationOtp" not in profile

def test_update_profile(client, db_session, user, auth_headers):
    response = client.put(
        "/api/users/profile",
        json={"name": "Alice Cooper", "email": "ALICE.C@example.com", "avatar": "https://img/a.png"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200, response.text
    db_session.refresh(user)
    assert user.name == "Alice Cooper"
    assert user.email == "alice.c@example.com"
    assert user.avatar == "https://img/a.png"

def test_update_profile_email_taken(client, user, other_user, auth_headers):
    response = client.put("/api/users/profile", json={"email": other_user.email}, headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["message"] == "Email already in use"

def test_update_profile_keeping_own_email(client, user, auth_headers):
    response = client.put("/api/users/profile", json={"email": user.email, "name": "A"}, headers=auth_headers(user))
    assert response.status_code == 200

def test_change_password(client, db_session, user, auth_headers):
    response = client.put(
        "/api/users/change-password",
        json={"currentPassword": "secret123", "newPassword": "another456"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200, response.text
    db_session.refresh(user)
    assert verify_password("another456", user.hashed_password)

def test_change_password_wrong_current(client, user, auth_headers):
    response = client.put(
        "/api/users/change-password",
        json={"currentPassword": "nope1234", "newPassword": "another456"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Current password is incorrect"

def test_change_password_for_google_account(client, make_user, auth_headers):
    google_user = make_user(email="g@example.com", password=None)
    response = client.put(
        "/api/users/change-password",
        json={"currentPassword": "whatever1", "newPassword": "another456"},
        headers=auth_headers(google_user),
    )
    assert response.status_code == 400

def test_change_password_checks_strength(client, user, auth_headers):
    response = client.put(
        "/api/users/change-password",
        json={"currentPassword": "secret123", "newPassword": "weak"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400

def test_my_stats(client, db_session, user, other_user, auth_headers, make_media, make_gallery):
    gallery = make_gallery(other_user)
    make_media(user, views=4, downloads=2)
    make_gallery(user)
    db_session.add(SharedGallery(gallery_id=gallery.id, shared_by_id=other_user.id, shared_with_id=user.id))
    db_session.add(ContactModel(name="A", email="a@example.com", message="hi", user_id=user.id))
    db_session.commit()

    stats = client.get("/api/users/stats", headers=auth_headers(user)).json()["stats"]

    assert stats == {
        "totalMedia": 1,
        "totalSize": stats["totalSize"],
        "totalViews": 4,
        "totalDownloads": 2,
        "totalGalleries": 1,
        "totalSharedGalleries": 1,
        "totalMessages": 1,
    }
    assert stats["totalSize"] > 0


# =====================================================================================
# ==                               ADMIN LIST TESTS                                  ==
# =====================================================================================

def test_admin_lists_users(client, db_session, user, other_user, admin_user, make_user, auth_headers):
    make_user(email="inactive@example.com", active=False)
    gone = make_user(email="gone@example.com")
    gone.deleted_at = utcnow()
    db_session.commit()

    data = client.get("/api/users/admin/all", headers=auth_headers(admin_user)).json()
    emails = {u["email"] for u in data["users"]}
    assert emails == {user.email, other_user.email, admin_user.email, "inactive@example.com"}
    assert data["total"] == 4

    admins = client.get("/api/users/admin/all?role=admin", headers=auth_headers(admin_user)).json()
    assert [u["email"] for u in admins["users"]] == [admin_user.email]

    inactive = client.get("/api/users/admin/all?isActive=false", headers=auth_headers(admin_user)).json()
    assert [u["email"] for u in inactive["users"]] == ["inactive@example.com"]

    searched = client.get("/api/users/admin/all?search=bob", headers=auth_headers(admin_user)).json()
    assert [u["email"] for u in searched["users"]] == [other_user.email]

    deleted = client.get("/api/users/admin/deleted", headers=auth_headers(admin_user)).json()
    assert [u["email"] for u in deleted["users"]] == ["gone@example.com"]
    assert deleted["users"][0]["deletedAt"] is not None

def test_admin_pagination(client, admin_user, make_user, auth_headers):
    for i in range(4):
        make_user(email=f"extra{i}@example.com")
    data = client.get("/api/users/admin/all?limit=2&page=2", headers=auth_headers(admin_user)).json()
    assert data["total"] == 5
    assert data["totalPages"] == 3
    assert data["currentPage"] == 2
    assert len(data["users"]) == 2

def test_admin_routes_reject_regular_users(client, user, other_user, auth_headers):
    headers = auth_headers(user)
    assert client.get("/api/users/admin/all", headers=headers).status_code == 403
    assert client.get(f"/api/users/admin/{other_user.id}", headers=headers).status_code == 403
    assert client.delete(f"/api/users/admin/{other_user.id}", headers=headers).status_code == 403

def test_admin_routes_check_role_before_lookup(client, user, auth_headers):
    missing = uuid.uuid4()
    assert client.get(f"/api/users/admin/{missing}", headers=auth_headers(user)).status_code == 403
    assert client.delete(f"/api/users/admin/{missing}").status_code == 401
    assert client.delete(f"/api/contact/admin/{missing}", headers=auth_headers(user)).status_code == 403


# =====================================================================================
# ==                              ADMIN MANAGE TESTS                                 ==
# =====================================================================================

def test_admin_reads_user(client, user, admin_user, auth_headers):
    response = client.get(f"/api/users/admin/{user.id}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["user"]["id"] == str(user.id)

    missing = client.get(f"/api/users/admin/{uuid.uuid4()}", headers=auth_headers(admin_user))
    assert missing.status_code == 404

def test_admin_updates_user(client, db_session, user, admin_user, auth_headers):
    response = client.put(
        f"/api/users/admin/{user.id}",
        json={"name": "Promoted", "role": "admin", "isActive": False},
        headers=auth_headers(admin_user),
    )

    assert response.status_code == 200, response.text
    db_session.refresh(user)
    assert user.name == "Promoted"
    assert user.role == "admin"
    assert user.is_active is False

def test_admin_update_rejects_duplicate_email(client, user, other_user, admin_user, auth_headers):
    response = client.put(
        f"/api/users/admin/{user.id}", json={"email": other_user.email}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 400

def test_admin_cannot_demote_or_deactivate_self(client, admin_user, auth_headers):
    demote = client.put(f"/api/users/admin/{admin_user.id}", json={"role": "user"}, headers=auth_headers(admin_user))
    assert demote.status_code == 400

    deactivate = client.put(
        f"/api/users/admin/{admin_user.id}", json={"isActive": False}, headers=auth_headers(admin_user)
    )
    assert deactivate.status_code == 400

def test_admin_update_rejects_unknown_role(client, user, admin_user, auth_headers):
    response = client.put(f"/api/users/admin/{user.id}", json={"role": "root"}, headers=auth_headers(admin_user))
    assert response.status_code == 400

def test_soft_delete_and_recover(client, db_session, user, admin_user, auth_headers):
    deleted = client.delete(f"/api/users/admin/{user.id}", headers=auth_headers(admin_user))
    assert deleted.status_code == 200
    db_session.refresh(user)
    assert user.deleted_at is not None
    assert user.is_active is False

    # Soft-deleted accounts cannot sign in or use old tokens
    login = client.post("/api/auth/login", json={"email": user.email, "password": "secret123"})
    assert login.status_code == 400

    again = client.delete(f"/api/users/admin/{user.id}", headers=auth_headers(admin_user))
    assert again.status_code == 400
    assert again.json()["message"] == "User is already deleted"

    recovered = client.put(f"/api/users/admin/{user.id}/recover", headers=auth_headers(admin_user))
    assert recovered.status_code == 200
    db_session.refresh(user)
    assert user.deleted_at is None
    assert user.is_active is True

    not_deleted = client.put(f"/api/users/admin/{user.id}/recover", headers=auth_headers(admin_user))
    assert not_deleted.status_code == 400

def test_admin_cannot_delete_self(client, admin_user, auth_headers):
    assert client.delete(f"/api/users/admin/{admin_user.id}", headers=auth_headers(admin_user)).status_code == 400
    permanent = client.delete(f"/api/users/admin/{admin_user.id}/permanent", headers=auth_headers(admin_user))
    assert permanent.status_code == 400

def test_permanent_delete_cleans_up(client, db_session, storage, user, other_user, admin_user, auth_headers, make_gallery, make_media):
    own_gallery = make_gallery(user)
    media = make_media(user, gallery=own_gallery)
    stored_key = media.filename
    others_gallery = make_gallery(other_user)
    others_media = make_media(other_user, gallery=others_gallery)
    db_session.add(SharedGallery(gallery_id=others_gallery.id, shared_by_id=other_user.id, shared_with_id=user.id))
    db_session.add(SharedGallery(gallery_id=own_gallery.id, shared_by_id=user.id, shared_with_id=other_user.id))
    db_session.add(ContactModel(name="A", email="a@example.com", message="hi", user_id=user.id))
    db_session.commit()
    user_id = user.id

    response = client.delete(f"/api/users/admin/{user_id}/permanent", headers=auth_headers(admin_user))

    assert response.status_code == 200, response.text
    db_session.expire_all()
    assert db_session.query(UserModel).filter(UserModel.id == user_id).first() is None
    assert db_session.query(MediaModel).filter(MediaModel.user_id == user_id).count() == 0
    assert db_session.query(GalleryModel).filter(GalleryModel.user_id == user_id).count() == 0
    assert db_session.query(SharedGallery).count() == 0
    assert db_session.query(ContactModel).one().user_id is None
    assert not storage.exists(stored_key)
    # Other users' content is untouched
    assert storage.exists(others_media.filename)
    assert db_session.query(GalleryModel).filter(GalleryModel.id == others_gallery.id).count() == 1

def test_reactivate_user(client, db_session, make_user, admin_user, auth_headers):
    inactive = make_user(email="inactive@example.com", active=False)
    response = client.put(f"/api/users/admin/{inactive.id}/reactivate", headers=auth_headers(admin_user))
    assert response.status_code == 200
    db_session.refresh(inactive)
    assert inactive.is_active is True

def test_admin_reads_user_stats(client, user, admin_user, auth_headers, make_media):
    make_media(user, views=7)
    response = client.get(f"/api/users/admin/{user.id}/stats", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.json()["stats"]["totalViews"] == 7
    assert client.get(f"/api/users/admin/{uuid.uuid4()}/stats", headers=auth_headers(admin_user)).status_code == 404
