# tests/test_galleries.py
import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from models.models import Gallery as GalleryModel, Media as MediaModel, SharedGallery, utcnow


def _share(client, headers, gallery, email):
    return client.post(f"/api/galleries/{gallery.id}/share", json={"email": email}, headers=headers)


# =====================================================================================
# ==                                  CREATE TESTS                                   ==
# =====================================================================================

def test_create_gallery(client, user, auth_headers):
    response = client.post(
        "/api/galleries",
        json={"name": "  Summer  ", "description": "Trips", "isPublic": True},
        headers=auth_headers(user),
    )

    assert response.status_code == 201, response.text
    gallery = response.json()["gallery"]
    assert gallery["name"] == "Summer"
    assert gallery["isPublic"] is True
    assert gallery["user"]["id"] == str(user.id)

@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_gallery_requires_name(client, user, auth_headers, name):
    response = client.post("/api/galleries", json={"name": name}, headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["message"] == "Gallery name is required"

def test_gallery_names_are_unique_per_owner(client, user, other_user, auth_headers, make_gallery):
    make_gallery(user, name="Family")

    duplicate = client.post("/api/galleries", json={"name": "Family"}, headers=auth_headers(user))
    assert duplicate.status_code == 400

    # Another owner may use the same name
    elsewhere = client.post("/api/galleries", json={"name": "Family"}, headers=auth_headers(other_user))
    assert elsewhere.status_code == 201

def test_gallery_name_uniqueness_is_enforced_by_the_database(db_session, user, make_gallery):
    make_gallery(user, name="Family")
    db_session.add(GalleryModel(name="Family", user_id=user.id))
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


# =====================================================================================
# ==                                  LIST TESTS                                     ==
# =====================================================================================

def test_list_galleries_includes_shared(client, db_session, user, other_user, auth_headers, make_gallery, make_media):
    own = make_gallery(user, name="Own")
    make_media(user, gallery=own)
    make_media(user, gallery=own)
    shared = make_gallery(other_user, name="Theirs shared")
    make_gallery(other_user, name="Theirs private")
    db_session.add(SharedGallery(gallery_id=shared.id, shared_by_id=other_user.id, shared_with_id=user.id))
    db_session.commit()

    data = client.get("/api/galleries", headers=auth_headers(user)).json()
    by_name = {g["name"]: g for g in data["galleries"]}

    assert set(by_name) == {"Own", "Theirs shared"}
    assert by_name["Own"]["isOwner"] is True
    assert by_name["Own"]["isShared"] is False
    assert by_name["Own"]["mediaCount"] == 2
    assert by_name["Theirs shared"]["isOwner"] is False
    assert by_name["Theirs shared"]["isShared"] is True
    assert by_name["Theirs shared"]["mediaCount"] == 0

    owned = client.get("/api/galleries?ownedOnly=true", headers=auth_headers(user)).json()
    assert [g["name"] for g in owned["galleries"]] == ["Own"]

def test_list_galleries_filters(client, user, auth_headers, make_gallery):
    make_gallery(user, name="Beach", is_public=True)
    make_gallery(user, name="Private notes", description="beach sketches")
    make_gallery(user, name="Mountains")

    searched = client.get("/api/galleries?search=beach", headers=auth_headers(user)).json()
    assert {g["name"] for g in searched["galleries"]} == {"Beach", "Private notes"}

    public = client.get("/api/galleries?isPublic=true", headers=auth_headers(user)).json()
    assert [g["name"] for g in public["galleries"]] == ["Beach"]


# =====================================================================================
# ==                               READ/UPDATE TESTS                                 ==
# =====================================================================================

def test_read_gallery_permissions(client, user, other_user, admin_user, auth_headers, make_gallery):
    private = make_gallery(other_user, name="Private")
    public = make_gallery(other_user, name="Public", is_public=True)

    assert client.get(f"/api/galleries/{private.id}", headers=auth_headers(user)).status_code == 403
    assert client.get(f"/api/galleries/{public.id}", headers=auth_headers(user)).status_code == 200
    assert client.get(f"/api/galleries/{private.id}", headers=auth_headers(admin_user)).status_code == 200
    assert client.get(f"/api/galleries/{uuid.uuid4()}", headers=auth_headers(user)).status_code == 404

def test_update_gallery(client, user, auth_headers, make_gallery):
    gallery = make_gallery(user, name="Old")

    response = client.put(
        f"/api/galleries/{gallery.id}",
        json={"name": "New", "isPublic": True, "coverImage": "/uploads/media-1.png"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200, response.text
    updated = response.json()["gallery"]
    assert updated["name"] == "New"
    assert updated["isPublic"] is True
    assert updated["coverImage"] == "/uploads/media-1.png"

def test_update_gallery_keeps_its_own_name(client, user, auth_headers, make_gallery):
    gallery = make_gallery(user, name="Same")
    response = client.put(f"/api/galleries/{gallery.id}", json={"name": "Same"}, headers=auth_headers(user))
    assert response.status_code == 200

def test_update_gallery_rejects_taken_or_blank_name(client, user, auth_headers, make_gallery):
    make_gallery(user, name="Taken")
    gallery = make_gallery(user, name="Mine")

    taken = client.put(f"/api/galleries/{gallery.id}", json={"name": "Taken"}, headers=auth_headers(user))
    assert taken.status_code == 400

    blank = client.put(f"/api/galleries/{gallery.id}", json={"name": "  "}, headers=auth_headers(user))
    assert blank.status_code == 400
    assert blank.json()["message"] == "Gallery name is required"

def test_update_gallery_by_non_owner(client, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(other_user, is_public=True)
    response = client.put(f"/api/galleries/{gallery.id}", json={"name": "Mine now"}, headers=auth_headers(user))
    assert response.status_code == 403


# =====================================================================================
# ==                                  DELETE TESTS                                   ==
# =====================================================================================

def test_delete_gallery_detaches_media_and_removes_shares(client, db_session, user, other_user, auth_headers, make_gallery, make_media):
    gallery = make_gallery(user)
    gallery_id = gallery.id
    media = make_media(user, gallery=gallery)
    media_id = media.id
    db_session.add(SharedGallery(gallery_id=gallery_id, shared_by_id=user.id, shared_with_id=other_user.id))
    db_session.commit()

    response = client.delete(f"/api/galleries/{gallery_id}", headers=auth_headers(user))

    assert response.status_code == 200
    assert db_session.query(GalleryModel).filter(GalleryModel.id == gallery_id).first() is None
    assert db_session.query(SharedGallery).count() == 0
    surviving = db_session.query(MediaModel).filter(MediaModel.id == media_id).one()
    assert surviving.gallery_id is None

def test_delete_gallery_by_non_owner(client, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(other_user)
    response = client.delete(f"/api/galleries/{gallery.id}", headers=auth_headers(user))
    assert response.status_code == 403


# =====================================================================================
# ==                                  SHARE TESTS                                    ==
# =====================================================================================

def test_share_gallery(client, db_session, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(user)

    response = _share(client, auth_headers(user), gallery, "BOB@example.com")

    assert response.status_code == 201, response.text
    share = response.json()["share"]
    assert share["sharedWith"]["id"] == str(other_user.id)
    assert share["sharedBy"]["id"] == str(user.id)
    assert share["galleryId"] == str(gallery.id)

    # The recipient can now open it
    assert client.get(f"/api/galleries/{gallery.id}", headers=auth_headers(other_user)).status_code == 200

def test_shares_are_unique_per_gallery_and_user(client, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(user)
    assert _share(client, auth_headers(user), gallery, other_user.email).status_code == 201

    again = _share(client, auth_headers(user), gallery, other_user.email)

    assert again.status_code == 400
    assert again.json()["message"] == "Gallery already shared with this user"

def test_share_with_owner_or_unknown_user(client, user, auth_headers, make_gallery):
    gallery = make_gallery(user)
    assert _share(client, auth_headers(user), gallery, user.email).status_code == 400
    assert _share(client, auth_headers(user), gallery, "ghost@example.com").status_code == 404

def test_share_with_soft_deleted_user(client, db_session, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(user)
    other_user.deleted_at = utcnow()
    db_session.commit()
    assert _share(client, auth_headers(user), gallery, other_user.email).status_code == 404

def test_only_owner_can_share(client, user, other_user, make_user, auth_headers, make_gallery):
    third = make_user(email="carol@example.com")
    gallery = make_gallery(other_user, is_public=True)
    assert _share(client, auth_headers(user), gallery, third.email).status_code == 403

def test_list_shares(client, user, other_user, make_user, auth_headers, make_gallery):
    third = make_user(email="carol@example.com")
    gallery = make_gallery(user)
    _share(client, auth_headers(user), gallery, other_user.email)
    _share(client, auth_headers(user), gallery, third.email)

    data = client.get(f"/api/galleries/{gallery.id}/shares", headers=auth_headers(user)).json()
    assert {s["sharedWith"]["email"] for s in data["shares"]} == {other_user.email, third.email}

    assert client.get(f"/api/galleries/{gallery.id}/shares", headers=auth_headers(other_user)).status_code == 403

def test_owner_removes_share(client, db_session, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(user)
    _share(client, auth_headers(user), gallery, other_user.email)

    response = client.delete(f"/api/galleries/{gallery.id}/share/{other_user.id}", headers=auth_headers(user))

    assert response.status_code == 200
    assert db_session.query(SharedGallery).count() == 0
    assert client.get(f"/api/galleries/{gallery.id}", headers=auth_headers(other_user)).status_code == 403

def test_recipient_can_leave_share(client, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(user)
    _share(client, auth_headers(user), gallery, other_user.email)

    response = client.delete(f"/api/galleries/{gallery.id}/share/{other_user.id}", headers=auth_headers(other_user))
    assert response.status_code == 200

def test_third_party_cannot_remove_share(client, user, other_user, make_user, auth_headers, make_gallery):
    third = make_user(email="carol@example.com")
    gallery = make_gallery(user)
    _share(client, auth_headers(user), gallery, other_user.email)

    response = client.delete(f"/api/galleries/{gallery.id}/share/{other_user.id}", headers=auth_headers(third))
    assert response.status_code == 403

def test_remove_missing_share(client, user, other_user, auth_headers, make_gallery):
    gallery = make_gallery(user)
    response = client.delete(f"/api/galleries/{gallery.id}/share/{other_user.id}", headers=auth_headers(user))
    assert response.status_code == 404
    assert response.json()["message"] == "Share not found"
