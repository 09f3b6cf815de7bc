"""
Admin content endpoints for slider, gallery and logos.
"""
import pytest
from sqlalchemy import select

from conftest import orders, png_bytes, seed_items
from studio_cms.models import ActivityLog, ClientLogo, GalleryImage, SliderImage, StoredImage


def _reference(key="library/hero.webp"):
    return {"r2_key": key, "cdn_url": f"https://cdn.test/{key}", "filename": key.rsplit("/", 1)[-1]}


class TestListing:
    def test_lists_region_items_in_display_order(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, SliderImage, "IN", 3)
        seed_items(db, SliderImage, "US", 2)
        db.query(SliderImage).filter(SliderImage.id == ids[0]).update({"display_order": 5})
        db.commit()

        resp = client.get("/api/admin/slider", params={"region": "IN"}, headers=super_headers)

        assert resp.status_code == 200
        assert [item["id"] for item in resp.json()] == [ids[1], ids[2], ids[0]]
        assert all(item["region_code"] == "IN" for item in resp.json())

    def test_region_defaults_to_default_region(self, client, db, super_headers, seed_regions):
        seed_items(db, SliderImage, "IN", 2)

        resp = client.get("/api/admin/slider", headers=super_headers)

        assert resp.status_code == 200
        assert len(resp.json()) == 2

    def test_logo_listing_includes_inactive(self, client, db, super_headers, seed_regions):
        seed_items(db, ClientLogo, "IN", 2)
        seed_items(db, ClientLogo, "IN", 1, is_active=False, display_order=2, r2_key="logos/old.webp")

        resp = client.get("/api/admin/logos", params={"region": "IN"}, headers=super_headers)

        assert len(resp.json()) == 3


class TestCreate:
    def test_create_from_reference_appends(self, client, db, super_headers, seed_regions):
        seed_items(db, SliderImage, "IN", 2)

        resp = client.post(
            "/api/admin/slider", params={"region": "IN"},
            json={**_reference(), "object_position": "top center"},
            headers=super_headers,
        )

        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["display_order"] == 2
        assert body["object_position"] == "top center"
        assert body["cdn_url_mobile"] == body["cdn_url"]
        assert resp.headers["X-Content-Invalidate"].startswith("slider:IN:")

    def test_create_from_upload_stores_webp_and_mobile_variant(self, client, db, storage, super_headers, seed_regions):
        resp = client.post(
            "/api/admin/gallery", params={"region": "IN"},
            files={"image": ("studio shot.png", png_bytes(), "image/png")},
            headers=super_headers,
        )

        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["filename"] == "studio shot.webp"
        assert body["r2_key"].startswith("gallery/")
        assert body["r2_key"] in storage.objects
        assert f"{body['r2_key']}-mobile" in storage.objects
        assert body["cdn_url_mobile"] != body["cdn_url"]

        db.expire_all()
        library = db.execute(select(StoredImage).where(StoredImage.r2_key == body["r2_key"])).scalar_one()
        assert library.category == "gallery"

    def test_create_rejects_non_image_upload(self, client, storage, super_headers, seed_regions):
        resp = client.post(
            "/api/admin/slider", params={"region": "IN"},
            files={"image": ("notes.txt", b"hello", "text/plain")},
            headers=super_headers,
        )

        assert resp.status_code == 400
        assert storage.objects == {}

    def test_create_rejects_spoofed_content_type(self, client, super_headers, seed_regions):
        resp = client.post(
            "/api/admin/slider", params={"region": "IN"},
            files={"image": ("fake.png", b"not really a png", "image/png")},
            headers=super_headers,
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid file type"

    def test_create_requires_an_image(self, client, super_headers, seed_regions):
        resp = client.post("/api/admin/slider", params={"region": "IN"}, json={}, headers=super_headers)

        assert resp.status_code == 400

    def test_partial_reference_rejected(self, client, super_headers, seed_regions):
        resp = client.post(
            "/api/admin/slider", params={"region": "IN"},
            json={"r2_key": "library/hero.webp"},
            headers=super_headers,
        )

        assert resp.status_code == 400

    def test_create_is_logged(self, client, db, super_headers, seed_regions, seed_users):
        client.post("/api/admin/slider", params={"region": "IN"}, json=_reference(), headers=super_headers)

        log = db.execute(select(ActivityLog).where(ActivityLog.action_type == "content_create")).scalar_one()
        assert log.admin_id == seed_users["super"].id
        assert log.entity_type == "slider_image"
        assert log.new_values["r2_key"] == "library/hero.webp"


class TestUpdate:
    def test_update_object_position_only(self, client, db, super_headers, seed_regions):
        item_id = seed_items(db, SliderImage, "IN", 1)[0]

        resp = client.put(
            f"/api/admin/slider/{item_id}", params={"region": "IN"},
            json={"object_position": "center top"},
            headers=super_headers,
        )

        assert resp.status_code == 200, resp.text
        assert resp.json()["object_position"] == "center top"
        assert resp.json()["r2_key"] == "slider_images/IN-0.webp"
        assert resp.json()["updated_at"] is not None

    def test_upload_replaces_unreferenced_old_object(self, client, db, storage, super_headers, seed_regions):
        item_id = seed_items(db, SliderImage, "IN", 1)[0]

        resp = client.put(
            f"/api/admin/slider/{item_id}", params={"region": "IN"},
            files={"image": ("new.png", png_bytes(), "image/png")},
            headers=super_headers,
        )

        assert resp.status_code == 200, resp.text
        assert "slider_images/IN-0.webp" in storage.deleted

    def test_update_in_other_region_is_not_found(self, client, db, super_headers, seed_regions):
        us_id = seed_items(db, SliderImage, "US", 1)[0]

        resp = client.put(
            f"/api/admin/slider/{us_id}", params={"region": "IN"},
            json={"object_position": "left"},
            headers=super_headers,
        )

        assert resp.status_code == 404


class TestSliderHardDelete:
    def test_delete_renumbers_remaining_rows(self, client, db, storage, super_headers, seed_regions):
        ids = seed_items(db, SliderImage, "IN", 4)

        resp = client.delete(f"/api/admin/slider/{ids[1]}", params={"region": "IN"}, headers=super_headers)

        assert resp.status_code == 200, resp.text
        assert orders(db, SliderImage, "IN") == {ids[0]: 0, ids[2]: 1, ids[3]: 2}
        assert "slider_images/IN-1.webp" in storage.deleted

    def test_shared_key_is_kept_in_storage(self, client, db, storage, super_headers, seed_regions):
        ids = seed_items(db, SliderImage, "IN", 1, r2_key="shared/a.webp")
        seed_items(db, SliderImage, "US", 1, r2_key="shared/a.webp")

        client.delete(f"/api/admin/slider/{ids[0]}", params={"region": "IN"}, headers=super_headers)

        assert "shared/a.webp" not in storage.deleted

    def test_library_image_is_kept_in_storage(self, client, db, storage, super_headers, seed_regions):
        db.add(StoredImage(filename="a.webp", r2_key="slider/a.webp", cdn_url="https://cdn.test/slider/a.webp",
                           cdn_url_mobile="", category="slider"))
        db.commit()
        ids = seed_items(db, SliderImage, "IN", 1, r2_key="slider/a.webp")

        client.delete(f"/api/admin/slider/{ids[0]}", params={"region": "IN"}, headers=super_headers)

        assert storage.deleted == []

    def test_delete_of_other_region_item_is_not_found(self, client, db, super_headers, seed_regions):
        us_id = seed_items(db, SliderImage, "US", 1)[0]

        resp = client.delete(f"/api/admin/slider/{us_id}", params={"region": "IN"}, headers=super_headers)

        assert resp.status_code == 404
        assert orders(db, SliderImage, "US") == {us_id: 0}


class TestGallerySoftClear:
    def test_delete_clears_image_but_keeps_position(self, client, db, storage, super_headers, seed_regions):
        ids = seed_items(db, GalleryImage, "IN", 3)

        resp = client.delete(f"/api/admin/gallery/{ids[1]}", params={"region": "IN"}, headers=super_headers)

        assert resp.status_code == 200, resp.text
        db.expire_all()
        row = db.get(GalleryImage, ids[1])
        assert row is not None
        assert (row.r2_key, row.cdn_url, row.cdn_url_mobile, row.filename) == ("", "", "", "")
        assert row.display_order == 1
        assert orders(db, GalleryImage, "IN") == {ids[0]: 0, ids[1]: 1, ids[2]: 2}
        assert storage.deleted == []

    def test_put_with_empty_image_fields_clears(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, GalleryImage, "IN", 2)

        resp = client.put(
            f"/api/admin/gallery/{ids[0]}", params={"region": "IN"},
            json={"r2_key": "", "cdn_url": None, "filename": ""},
            headers=super_headers,
        )

        assert resp.status_code == 200
        assert resp.json()["cdn_url"] == ""
        assert resp.json()["id"] == ids[0]
        assert resp.json()["display_order"] == 0

    def test_cleared_slot_can_be_filled_again(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, GalleryImage, "IN", 1, r2_key="", cdn_url="", cdn_url_mobile="", filename="")

        resp = client.put(
            f"/api/admin/gallery/{ids[0]}", params={"region": "IN"},
            json=_reference("library/new.webp"),
            headers=super_headers,
        )

        assert resp.json()["cdn_url"] == "https://cdn.test/library/new.webp"
        assert resp.json()["display_order"] == 0

    def test_clear_response_carries_refreshed_timestamps(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, GalleryImage, "IN", 2)

        cleared = client.delete(f"/api/admin/gallery/{ids[0]}", params={"region": "IN"}, headers=super_headers)
        emptied = client.put(f"/api/admin/gallery/{ids[1]}", params={"region": "IN"},
                             json={"r2_key": "", "cdn_url": "", "filename": ""}, headers=super_headers)

        assert cleared.status_code == 200, cleared.text
        assert cleared.json()["item"]["updated_at"] is not None
        assert emptied.status_code == 200, emptied.text
        assert emptied.json()["updated_at"] is not None
        logs = db.execute(select(ActivityLog).where(ActivityLog.action_type == "content_delete")).scalars().all()
        assert sorted(int(log.entity_id) for log in logs) == sorted(ids)


class TestGalleryMobileCap:
    @pytest.fixture
    def full_gallery(self, db, seed_regions):
        visible = seed_items(db, GalleryImage, "IN", 10, mobile_visible=1)
        hidden = seed_items(db, GalleryImage, "IN", 1, mobile_visible=0, display_order=10,
                            r2_key="gallery_images/IN-hidden.webp")
        return visible, hidden[0]

    def test_eleventh_visible_item_is_rejected(self, client, db, super_headers, full_gallery):
        _, hidden_id = full_gallery

        resp = client.put(
            f"/api/admin/gallery/{hidden_id}/mobile-visibility", params={"region": "IN"},
            json={"visible": True},
            headers=super_headers,
        )

        assert resp.status_code == 400
        assert "Maximum 10" in resp.json()["detail"]
        db.expire_all()
        assert db.get(GalleryImage, hidden_id).mobile_visible == 0

    def test_hiding_frees_a_slot(self, client, db, super_headers, full_gallery):
        visible, hidden_id = full_gallery

        hide = client.put(f"/api/admin/gallery/{visible[0]}/mobile-visibility", params={"region": "IN"},
                          json={"visible": False}, headers=super_headers)
        show = client.put(f"/api/admin/gallery/{hidden_id}/mobile-visibility", params={"region": "IN"},
                          json={"visible": True}, headers=super_headers)

        assert hide.status_code == 200
        assert show.status_code == 200
        assert show.json()["mobile_visible"] == 1
        assert hide.json()["updated_at"] is not None
        assert show.json()["updated_at"] is not None

    def test_new_item_is_hidden_when_cap_reached(self, client, super_headers, full_gallery):
        resp = client.post("/api/admin/gallery", params={"region": "IN"},
                           json=_reference("library/extra.webp"), headers=super_headers)

        assert resp.status_code == 201
        assert resp.json()["mobile_visible"] == 0

    def test_cap_is_per_region(self, client, db, super_headers, full_gallery):
        us_id = seed_items(db, GalleryImage, "US", 1, mobile_visible=0)[0]

        resp = client.put(f"/api/admin/gallery/{us_id}/mobile-visibility", params={"region": "US"},
                          json={"visible": True}, headers=super_headers)

        assert resp.status_code == 200


class TestLogos:
    def test_delete_deactivates_and_compacts(self, client, db, storage, super_headers, seed_regions):
        ids = seed_items(db, ClientLogo, "IN", 3)

        resp = client.delete(f"/api/admin/logos/{ids[0]}", params={"region": "IN"}, headers=super_headers)

        assert resp.status_code == 200, resp.text
        db.expire_all()
        assert db.get(ClientLogo, ids[0]).is_active is False
        assert orders(db, ClientLogo, "IN") == {ids[1]: 0, ids[2]: 1}
        assert storage.deleted == []

    def test_permanent_delete_removes_row(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, ClientLogo, "IN", 2)

        resp = client.delete(f"/api/admin/logos/{ids[0]}", params={"region": "IN", "permanent": "true"},
                             headers=super_headers)

        assert resp.status_code == 200
        db.expire_all()
        assert db.get(ClientLogo, ids[0]) is None
        assert orders(db, ClientLogo, "IN") == {ids[1]: 0}

    def test_activate_appends_to_end(self, client, db, super_headers, seed_regions):
        active = seed_items(db, ClientLogo, "IN", 2)
        inactive = seed_items(db, ClientLogo, "IN", 1, is_active=False, display_order=2,
                              r2_key="logos/back.webp")[0]

        resp = client.post("/api/admin/logos/activate", params={"region": "IN"},
                           json={"ids": [inactive]}, headers=super_headers)

        assert resp.status_code == 200, resp.text
        assert orders(db, ClientLogo, "IN") == {active[0]: 0, active[1]: 1, inactive: 2}

    def test_bulk_deactivate_with_unknown_id_changes_nothing(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, ClientLogo, "IN", 2)

        resp = client.post("/api/admin/logos/deactivate", params={"region": "IN"},
                           json={"ids": [ids[0], 999]}, headers=super_headers)

        assert resp.status_code == 404
        assert orders(db, ClientLogo, "IN") == {ids[0]: 0, ids[1]: 1}

    def test_adding_an_active_logo_twice_conflicts(self, client, db, super_headers, seed_regions):
        client.post("/api/admin/logos", params={"region": "IN"}, json=_reference("logos/acme.webp"),
                    headers=super_headers)

        resp = client.post("/api/admin/logos", params={"region": "IN"}, json=_reference("logos/acme.webp"),
                           headers=super_headers)

        assert resp.status_code == 409

    def test_adding_an_inactive_logo_reactivates_it(self, client, db, super_headers, seed_regions):
        seed_items(db, ClientLogo, "IN", 1)
        old = seed_items(db, ClientLogo, "IN", 1, is_active=False, display_order=1, r2_key="logos/acme.webp")[0]

        resp = client.post("/api/admin/logos", params={"region": "IN"}, json=_reference("logos/acme.webp"),
                           headers=super_headers)

        assert resp.status_code == 201
        assert resp.json()["id"] == old
        assert resp.json()["display_order"] == 1
        assert resp.json()["alt_text"] == "acme"


class TestLogoPartitionOrder:
    """Inactive logos are numbered after the active ones; no two rows share a position."""

    def test_deactivated_logo_is_parked_after_active_block(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, ClientLogo, "IN", 3)

        client.delete(f"/api/admin/logos/{ids[0]}", params={"region": "IN"}, headers=super_headers)

        assert orders(db, ClientLogo, "IN", active_only=False) == {ids[1]: 0, ids[2]: 1, ids[0]: 2}

    def test_positions_stay_unique_through_deactivate_and_reactivate(self, client, db, super_headers,
                                                                      seed_regions):
        ids = seed_items(db, ClientLogo, "IN", 4)

        client.post("/api/admin/logos/deactivate", params={"region": "IN"},
                    json={"ids": [ids[2], ids[0]]}, headers=super_headers)
        parked = orders(db, ClientLogo, "IN", active_only=False)
        client.post("/api/admin/logos/activate", params={"region": "IN"},
                    json={"ids": [ids[0]]}, headers=super_headers)
        back = orders(db, ClientLogo, "IN", active_only=False)

        assert parked == {ids[1]: 0, ids[3]: 1, ids[0]: 2, ids[2]: 3}
        assert back == {ids[1]: 0, ids[3]: 1, ids[0]: 2, ids[2]: 3}

    def test_new_logo_goes_before_inactive_ones(self, client, db, super_headers, seed_regions):
        active = seed_items(db, ClientLogo, "IN", 1)[0]
        inactive = seed_items(db, ClientLogo, "IN", 1, is_active=False, display_order=1,
                              r2_key="logos/old.webp")[0]

        resp = client.post("/api/admin/logos", params={"region": "IN"}, json=_reference("logos/new.webp"),
                           headers=super_headers)

        assert resp.status_code == 201, resp.text
        created = resp.json()["id"]
        assert orders(db, ClientLogo, "IN", active_only=False) == {active: 0, created: 1, inactive: 2}

    def test_permanent_delete_renumbers_inactive_rows(self, client, db, super_headers, seed_regions):
        ids = seed_items(db, ClientLogo, "IN", 2)
        inactive = seed_items(db, ClientLogo, "IN", 1, is_active=False, display_order=2,
                              r2_key="logos/old.webp")[0]

        client.delete(f"/api/admin/logos/{ids[0]}", params={"region": "IN", "permanent": "true"},
                      headers=super_headers)

        assert orders(db, ClientLogo, "IN", active_only=False) == {ids[1]: 0, inactive: 1}
