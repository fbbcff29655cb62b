# tests/test_permissions.py
import pytest
from fastapi import HTTPException

from models.models import SharedGallery
from permissions import is_admin, is_owner, can_modify, is_shared_with, can_view_gallery, can_view_media, ensure


@pytest.fixture
def shared_setup(db_session, user, other_user, make_gallery, make_media):
    """other_user owns a private gallery shared with user, holding one private photo."""
    gallery = make_gallery(other_user, name="Shared")
    media = make_media(other_user, gallery=gallery)
    db_session.add(SharedGallery(gallery_id=gallery.id, shared_by_id=other_user.id, shared_with_id=user.id))
    db_session.commit()
    return gallery, media


def test_is_admin(user, admin_user):
    assert is_admin(admin_user) is True
    assert is_admin(user) is False
    assert is_admin(None) is False

def test_ownership_and_modification(user, other_user, admin_user, make_media):
    media = make_media(user)
    assert is_owner(user, media) is True
    assert is_owner(other_user, media) is False
    assert is_owner(None, media) is False
    assert can_modify(user, media) is True
    assert can_modify(admin_user, media) is True
    assert can_modify(other_user, media) is False

def test_gallery_visibility(db_session, user, other_user, admin_user, make_user, make_gallery, shared_setup):
    gallery, _ = shared_setup
    stranger = make_user(email="stranger@example.com")

    assert is_shared_with(db_session, gallery, user) is True
    assert is_shared_with(db_session, gallery, stranger) is False
    assert is_shared_with(db_session, gallery, None) is False

    assert can_view_gallery(db_session, other_user, gallery) is True
    assert can_view_gallery(db_session, user, gallery) is True
    assert can_view_gallery(db_session, admin_user, gallery) is True
    assert can_view_gallery(db_session, stranger, gallery) is False
    assert can_view_gallery(db_session, None, gallery) is False

    public = make_gallery(other_user, name="Public", is_public=True)
    assert can_view_gallery(db_session, None, public) is True

def test_media_visibility(db_session, user, other_user, make_user, make_media, shared_setup):
    _, shared_media = shared_setup
    stranger = make_user(email="stranger@example.com")
    loose_private = make_media(other_user)
    public = make_media(other_user, is_public=True)

    assert can_view_media(db_session, user, shared_media) is True
    assert can_view_media(db_session, stranger, shared_media) is False
    assert can_view_media(db_session, None, shared_media) is False
    assert can_view_media(db_session, user, loose_private) is False
    assert can_view_media(db_session, None, public) is True

def test_ensure_raises_access_denied(user):
    ensure(True, user)
    with pytest.raises(HTTPException) as exc_info:
        ensure(False, user, action="media 1")
    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "Access denied"
