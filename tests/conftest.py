import io
import os

# Settings are read at import time
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["JWT_SECRET_PREVIOUS"] = ""

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from studio_cms.database import Base, get_db, get_session_factory
from studio_cms.exceptions import NotFoundError
from studio_cms.main import app
from studio_cms.models import AdminUser, ClientLogo, GalleryImage, Region, Service, SliderImage, TeamMember
from studio_cms.services.cache import public_cache
from studio_cms.services.regions import region_directory
from studio_cms.services.storage import StoredObject, get_storage_gateway
from studio_cms.utils.auth import hash_password
from studio_cms.utils.jwt_auth import create_access_token, token_claims_for

PASSWORD = "Str0ng!Pass"


class FakeStorage:
    """In-memory storage gateway."""

    def __init__(self):
        self.objects = {}
        self.deleted = []

    async def put(self, data, content_type, key=None):
        key = key or f"fake/{len(self.objects)}"
        self.objects[key] = data
        return StoredObject(key=key, url=f"https://cdn.test/{key}")

    async def delete(self, key):
        self.objects.pop(key, None)
        self.deleted.append(key)

    async def download(self, key):
        if key not in self.objects:
            raise NotFoundError(f"Stored object {key} does not exist", error="Image not found")
        data = self.objects[key]

        async def body():
            yield data

        return body()


@pytest.fixture
def db_url(tmp_path):
    return f"{tmp_path}/studio_cms_test.db"


@pytest.fixture
def sync_engine(db_url):
    engine = create_engine(f"sqlite:///{db_url}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def async_engine(db_url, sync_engine):
    return create_async_engine(f"sqlite+aiosqlite:///{db_url}", poolclass=NullPool)


@pytest.fixture
def db(sync_engine):
    session = sessionmaker(bind=sync_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(async_engine, storage):
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    app.dependency_overrides[get_storage_gateway] = lambda: storage
    region_directory.clear()
    public_cache.clear()

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
    region_directory.clear()
    public_cache.clear()


@pytest.fixture
def seed_regions(db):
    regions = {
        "IN": Region(code="IN", name="India", route="/", is_active=True, is_default=True),
        "US": Region(code="US", name="United States", route="/us", is_active=True, is_default=False),
        "UK": Region(code="UK", name="United Kingdom", domain="studio.co.uk", is_active=True, is_default=False),
    }
    db.add_all(regions.values())
    db.commit()
    return regions


@pytest.fixture
def seed_users(db, seed_regions):
    users = {
        "super": AdminUser(username="root", email="root@studio.test", full_name="Root Admin",
                           password_hash=hash_password(PASSWORD), is_active=True,
                           is_super_admin=True, assigned_regions=[]),
        "india": AdminUser(username="priya", email="priya@studio.test", full_name="Priya",
                           password_hash=hash_password(PASSWORD), is_active=True,
                           is_super_admin=False, assigned_regions=["IN"]),
        "inactive": AdminUser(username="gone", email="gone@studio.test", full_name="Gone",
                              password_hash=hash_password(PASSWORD), is_active=False,
                              is_super_admin=False, assigned_regions=["IN"]),
    }
    db.add_all(users.values())
    db.commit()
    for user in users.values():
        db.refresh(user)
    return users


def token_for(user) -> str:
    return create_access_token(token_claims_for(user))


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def super_headers(seed_users):
    return auth_headers(seed_users["super"])


@pytest.fixture
def india_headers(seed_users):
    return auth_headers(seed_users["india"])


def seed_items(db, model, region_code, count, start_id=None, **fields):
    """Insert count rows with display_order 0..count-1; returns their ids."""
    rows = []
    for index in range(count):
        values = dict(
            region_code=region_code,
            filename=f"{region_code.lower()}-{index}.webp",
            r2_key=f"{model.__tablename__}/{region_code}-{index}.webp",
            cdn_url=f"https://cdn.test/{model.__tablename__}/{region_code}-{index}.webp",
            cdn_url_mobile=f"https://cdn.test/{model.__tablename__}/{region_code}-{index}.webp",
            display_order=index,
            is_active=True,
        )
        if start_id is not None:
            values["id"] = start_id + index
        values.update(fields)
        rows.append(model(**values))
    db.add_all(rows)
    db.commit()
    return [row.id for row in rows]


def orders(db, model, region_code, active_only=True) -> dict:
    """Fresh {id: display_order} map of a region's rows."""
    db.expire_all()
    query = select(model).where(model.region_code == region_code)
    if active_only:
        query = query.where(model.is_active.is_(True))
    return {row.id: row.display_order for row in db.execute(query).scalars()}


def png_bytes(width=1200, height=800) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


MODELS = {
    "slider": SliderImage,
    "gallery": GalleryImage,
    "logos": ClientLogo,
    "services": Service,
    "team": TeamMember,
}
