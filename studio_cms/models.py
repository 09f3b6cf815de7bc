"""
SQLAlchemy models for the application.
All database models inherit from Base (declarative base).
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func
from studio_cms.database import Base


class Region(Base):
    """
    Market/locale partition with its own content set.
    Served either from its own domain or from a route prefix on a shared domain.
    """
    __tablename__ = "regions"

    code = Column(String(2), primary_key=True)
    name = Column(String, nullable=False)
    domain = Column(String, nullable=True)
    route = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class AdminUser(Base):
    """Admin dashboard account."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=False, unique=True)
    full_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_super_admin = Column(Boolean, nullable=False, default=False)
    # Region codes a normal admin may manage; ignored for super admins
    assigned_regions = Column(JSON, nullable=False, default=list)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class OrderedRegionContent:
    """
    Columns shared by every ordered, region-scoped content collection.

    display_order is contiguous from 0 within (region_code, table) for the
    active rows. An empty r2_key marks a placeholder slot.
    """

    id = Column(Integer, primary_key=True, index=True)

    @declared_attr
    def region_code(cls):
        return Column(String(2), ForeignKey("regions.code"), nullable=False, index=True)

    filename = Column(String, nullable=False, default="")
    r2_key = Column(String, nullable=False, default="", index=True)
    cdn_url = Column(String, nullable=False, default="")
    cdn_url_mobile = Column(String, nullable=False, default="")
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @declared_attr
    def __table_args__(cls):
        return (Index(f"ix_{cls.__tablename__}_region_order", "region_code", "display_order"),)


class SliderImage(OrderedRegionContent, Base):
    """Hero slider slide."""
    __tablename__ = "slider_images"

    object_position = Column(String, nullable=False, default="center center")


class GalleryImage(OrderedRegionContent, Base):
    """
    Gallery grid position.
    Cleared positions keep their row with empty image fields.
    """
    __tablename__ = "gallery_images"

    mobile_visible = Column(Integer, nullable=False, default=1)


class ClientLogo(OrderedRegionContent, Base):
    """Client logo. Removing a logo from the list only sets is_active to False."""
    __tablename__ = "client_logos"

    alt_text = Column(String, nullable=True)


class Service(OrderedRegionContent, Base):
    """Service card. The icon image is optional (empty r2_key)."""
    __tablename__ = "services"

    title = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)


class TeamMember(OrderedRegionContent, Base):
    """Team member card. The photo is optional (empty r2_key)."""
    __tablename__ = "team_members"

    name = Column(String, nullable=False, default="")
    position = Column(String, nullable=True)
    bio = Column(Text, nullable=True)


class ActivityLog(Base):
    """
    Append-only audit trail of admin actions.
    old_values/new_values hold JSON snapshots used for diffing.
    """
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True, index=True)
    action_type = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=True, index=True)
    entity_id = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


class StoredImage(Base):
    """Image library entry. Content rows reference its r2_key."""
    __tablename__ = "image_storage"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String, nullable=False)
    r2_key = Column(String, nullable=False, unique=True)
    cdn_url = Column(String, nullable=False)
    cdn_url_mobile = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, index=True)
    file_size = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
