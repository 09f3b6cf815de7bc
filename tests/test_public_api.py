"""
Public content endpoints, caching and health checks.
"""
from conftest import seed_items
from studio_cms.models import ClientLogo, GalleryImage, SliderImage


class TestPublicContent:
    def test_slider_for_explicit_region(self, client, db, seed_regions):
        seed_items(db, SliderImage, "US", 2, object_position="top left")
        seed_items(db, SliderImage, "IN", 1, start_id=50)

        resp = client.get("/api/slider", params={"region": "us"})

        assert resp.status_code == 200
        body = resp.json()
        assert [slide["display_order"] for slide in body] == [0, 1]
        assert body[0]["object_position"] == "top left"
        assert set(body[0]) == {"id", "cdn_url", "cdn_url_mobile", "object_position", "display_order"}

    def test_unknown_or_malformed_region_returns_empty_list(self, client, db, seed_regions):
        seed_items(db, SliderImage, "IN", 2)

        assert client.get("/api/slider", params={"region": "ZZ"}).json() == []
        assert client.get("/api/slider", params={"region": "india"}).json() == []

    def test_region_is_detected_without_parameter(self, client, db, seed_regions):
        seed_items(db, ClientLogo, "IN", 2, alt_text="Client")

        resp = client.get("/api/logos")

        assert len(resp.json()) == 2
        assert resp.json()[0]["alt_text"] == "Client"

    def test_inactive_logos_are_hidden(self, client, db, seed_regions):
        seed_items(db, ClientLogo, "IN", 2)
        seed_items(db, ClientLogo, "IN", 1, is_active=False, display_order=2, r2_key="logos/old.webp")

        assert len(client.get("/api/logos", params={"region": "IN"}).json()) == 2

    def test_gallery_keeps_cleared_positions(self, client, db, seed_regions):
        seed_items(db, GalleryImage, "IN", 2)
        seed_items(db, GalleryImage, "IN", 1, display_order=2, r2_key="", cdn_url="", cdn_url_mobile="", filename="")

        body = client.get("/api/gallery", params={"region": "IN"}).json()

        assert len(body) == 3
        assert body[2]["cdn_url"] == ""

    def test_gallery_mobile_filters_hidden_empty_and_caps(self, client, db, seed_regions):
        seed_items(db, GalleryImage, "IN", 12, mobile_visible=1)
        hidden = seed_items(db, GalleryImage, "IN", 1, mobile_visible=0, r2_key="gallery/hidden.webp",
                            display_order=0)
        empty = seed_items(db, GalleryImage, "IN", 1, mobile_visible=1, r2_key="", cdn_url="",
                           cdn_url_mobile="", display_order=0)

        body = client.get("/api/gallery/mobile", params={"region": "IN"}).json()

        assert len(body) == 10
        ids = {item["id"] for item in body}
        assert hidden[0] not in ids
        assert empty[0] not in ids

    def test_public_regions_default_first(self, client, seed_regions):
        body = client.get("/api/regions").json()

        assert [r["code"] for r in body] == ["IN", "UK", "US"]


class TestPublicCache:
    def test_admin_mutation_invalidates_cached_listing(self, client, db, super_headers):
        seed_items(db, SliderImage, "IN", 1)
        first = client.get("/api/slider", params={"region": "IN"})

        # Rows written behind the API's back stay invisible until invalidation
        seed_items(db, SliderImage, "IN", 1, display_order=1, r2_key="slider/direct.webp")
        cached = client.get("/api/slider", params={"region": "IN"})

        created = client.post(
            "/api/admin/slider",
            params={"region": "IN"},
            json={"r2_key": "library/new.webp", "cdn_url": "https://cdn.test/library/new.webp",
                  "filename": "new.webp"},
            headers=super_headers,
        )
        fresh = client.get("/api/slider", params={"region": "IN"})

        assert created.status_code == 201, created.text
        assert len(first.json()) == 1
        assert len(cached.json()) == 1
        assert len(fresh.json()) == 3
        assert int(fresh.headers["X-Content-Version"]) == int(first.headers["X-Content-Version"]) + 1
        assert created.headers["X-Content-Invalidate"] == f"slider:IN:{fresh.headers['X-Content-Version']}"

    def test_invalidation_is_scoped_to_collection_and_region(self, client, db, super_headers):
        seed_items(db, SliderImage, "US", 1)
        client.get("/api/slider", params={"region": "US"})
        seed_items(db, SliderImage, "US", 1, display_order=1, r2_key="slider/direct.webp")

        client.post(
            "/api/admin/slider",
            params={"region": "IN"},
            json={"r2_key": "library/new.webp", "cdn_url": "https://cdn.test/library/new.webp",
                  "filename": "new.webp"},
            headers=super_headers,
        )

        assert len(client.get("/api/slider", params={"region": "US"}).json()) == 1


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "healthy"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_database(self, client):
        body = client.get("/health/db").json()

        assert body["database"] == "connected"
        assert body["result"] == 1

    def test_storage(self, client):
        assert client.get("/health/storage").json()["status"] == "healthy"
