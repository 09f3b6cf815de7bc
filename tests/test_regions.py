"""
Region scoping, region management and public region detection.
"""
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from conftest import seed_items
from studio_cms.models import ActivityLog, ClientLogo, GalleryImage, Region, SliderImage
from studio_cms.services.regions import detect_region


class TestRegionScope:
    def test_malformed_region_is_bad_request(self, client, super_headers):
        resp = client.get("/api/admin/slider", params={"region": "india"}, headers=super_headers)

        assert resp.status_code == 400

    def test_unknown_region_is_not_found(self, client, super_headers):
        resp = client.get("/api/admin/slider", params={"region": "ZZ"}, headers=super_headers)

        assert resp.status_code == 404

    def test_unassigned_region_is_forbidden(self, client, india_headers):
        resp = client.get("/api/admin/slider", params={"region": "US"}, headers=india_headers)

        assert resp.status_code == 403

    def test_assigned_region_is_allowed(self, client, india_headers):
        resp = client.get("/api/admin/gallery", params={"region": "IN"}, headers=india_headers)

        assert resp.status_code == 200

    def test_super_admin_reaches_every_region(self, client, super_headers):
        for code in ("IN", "US", "UK"):
            resp = client.get("/api/admin/logos", params={"region": code}, headers=super_headers)
            assert resp.status_code == 200

    def test_inactive_account_token_is_forbidden(self, client, seed_users):
        from conftest import auth_headers

        resp = client.get("/api/admin/slider", params={"region": "IN"}, headers=auth_headers(seed_users["inactive"]))

        assert resp.status_code == 403

    def test_garbage_token_is_unauthorized(self, client, seed_regions):
        resp = client.get("/api/admin/slider", headers={"Authorization": "Bearer not-a-jwt"})

        assert resp.status_code == 401


class TestMyRegions:
    def test_regional_admin_sees_assigned_regions(self, client, india_headers):
        resp = client.get("/api/admin/regions/me", headers=india_headers)

        assert resp.status_code == 200
        body = resp.json()
        assert [r["code"] for r in body["availableRegions"]] == ["IN"]
        assert body["isSuperAdmin"] is False

    def test_super_admin_sees_all_active_regions(self, client, super_headers):
        resp = client.get("/api/admin/regions/me", headers=super_headers)

        assert {r["code"] for r in resp.json()["availableRegions"]} == {"IN", "US", "UK"}
        assert resp.json()["isSuperAdmin"] is True


class TestRegionManagement:
    def test_regional_admin_cannot_list_all_regions(self, client, india_headers):
        resp = client.get("/api/admin/regions", headers=india_headers)

        assert resp.status_code == 403

    def test_create_region(self, client, db, super_headers):
        resp = client.post("/api/admin/regions", json={"code": "AE", "name": "UAE", "route": "/ae"},
                           headers=super_headers)

        assert resp.status_code == 201, resp.text
        assert resp.json()["is_active"] is True
        assert resp.json()["is_default"] is False
        log = db.execute(select(ActivityLog).where(ActivityLog.action_type == "region_create")).scalar_one()
        assert log.entity_id == "AE"

    @pytest.mark.parametrize("payload", [
        {"code": "ae", "name": "UAE", "route": "/ae"},
        {"code": "AE", "name": "  ", "route": "/ae"},
        {"code": "AE", "name": "UAE"},
    ])
    def test_create_region_validation(self, client, super_headers, payload):
        resp = client.post("/api/admin/regions", json=payload, headers=super_headers)

        assert resp.status_code == 400

    def test_duplicate_code_conflicts(self, client, super_headers):
        resp = client.post("/api/admin/regions", json={"code": "US", "name": "Again", "route": "/again"},
                           headers=super_headers)

        assert resp.status_code == 409

    def test_copy_from_region_duplicates_content(self, client, db, super_headers):
        seed_items(db, SliderImage, "IN", 2)
        seed_items(db, GalleryImage, "IN", 3)
        seed_items(db, ClientLogo, "IN", 1, is_active=False)

        resp = client.post(
            "/api/admin/regions",
            json={"code": "AE", "name": "UAE", "domain": "studio.ae", "copyFromRegion": "IN"},
            headers=super_headers,
        )

        assert resp.status_code == 201, resp.text
        db.expire_all()
        slides = db.execute(select(SliderImage).where(SliderImage.region_code == "AE")
                            .order_by(SliderImage.display_order)).scalars().all()
        assert [s.r2_key for s in slides] == ["slider_images/IN-0.webp", "slider_images/IN-1.webp"]
        assert len(db.execute(select(GalleryImage).where(GalleryImage.region_code == "AE")).scalars().all()) == 3
        logo = db.execute(select(ClientLogo).where(ClientLogo.region_code == "AE")).scalar_one()
        assert logo.is_active is False

    def test_copy_from_unknown_region_is_not_found(self, client, db, super_headers):
        resp = client.post(
            "/api/admin/regions",
            json={"code": "AE", "name": "UAE", "route": "/ae", "copyFromRegion": "ZZ"},
            headers=super_headers,
        )

        assert resp.status_code == 404
        db.expire_all()
        assert db.get(Region, "AE") is None

    def test_update_region(self, client, super_headers):
        resp = client.put("/api/admin/regions/US", json={"name": "USA", "domain": "studio.us"},
                          headers=super_headers)

        assert resp.status_code == 200
        assert resp.json()["name"] == "USA"
        assert resp.json()["route"] == "/us"

    def test_update_cannot_remove_both_domain_and_route(self, client, super_headers):
        resp = client.put("/api/admin/regions/US", json={"route": ""}, headers=super_headers)

        assert resp.status_code == 400

    def test_cannot_deactivate_default_region(self, client, super_headers):
        resp = client.put("/api/admin/regions/IN/status", json={"is_active": False}, headers=super_headers)

        assert resp.status_code == 400

    def test_deactivate_and_reactivate(self, client, super_headers):
        off = client.put("/api/admin/regions/US/status", json={"is_active": False}, headers=super_headers)
        on = client.put("/api/admin/regions/US/status", json={"is_active": True}, headers=super_headers)

        assert off.json()["is_active"] is False
        assert on.json()["is_active"] is True

    def test_delete_keeps_content_and_hides_it_publicly(self, client, db, super_headers):
        ids = seed_items(db, SliderImage, "US", 2)
        assert len(client.get("/api/slider", params={"region": "US"}).json()) == 2

        resp = client.delete("/api/admin/regions/US", headers=super_headers)

        assert resp.status_code == 200
        db.expire_all()
        assert db.get(Region, "US").is_active is False
        assert all(db.get(SliderImage, i) is not None for i in ids)
        assert client.get("/api/slider", params={"region": "US"}).json() == []

    def test_cannot_delete_default_region(self, client, super_headers):
        resp = client.delete("/api/admin/regions/IN", headers=super_headers)

        assert resp.status_code == 400


def _region(code, domain=None, route=None, is_default=False):
    return SimpleNamespace(code=code, domain=domain, route=route, is_default=is_default)


class TestRegionDetection:
    REGIONS = [
        _region("IN", route="/", is_default=True),
        _region("US", route="/us"),
        _region("UK", domain="studio.co.uk"),
    ]

    def test_longest_route_prefix_wins(self):
        assert detect_region("/us/gallery", None, None, self.REGIONS) == "US"

    def test_referer_path_is_used(self):
        regions = [_region("US", route="/us"), _region("IN", is_default=True)]
        assert detect_region("/api/slider", "https://studio.test/us/about", None, regions) == "US"

    def test_root_route_matches_any_path(self):
        assert detect_region("/api/slider", "https://studio.test/us/about", None, self.REGIONS) == "IN"

    def test_domain_match(self):
        regions = [r for r in self.REGIONS if r.route != "/"] + [_region("IN", is_default=True)]
        assert detect_region("/api/slider", None, "https://www.studio.co.uk", regions) == "UK"

    def test_falls_back_to_default(self):
        regions = [_region("US", route="/us"), _region("IN", is_default=True)]
        assert detect_region("/api/logos", None, None, regions) == "IN"

    def test_falls_back_to_configured_code_without_regions(self):
        assert detect_region(None, None, None, []) == "IN"
