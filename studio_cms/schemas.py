"""
Pydantic schemas for request and response data validation.
Defines data structures for API endpoints with automatic validation and serialization.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Any, Optional, List


class ContentItemResponse(BaseModel):
    """
    Admin view of one content item (slide, gallery position, logo,
    service or team member).
    Collection-specific fields are None for the collections that lack them.
    """
    id: int
    region_code: str
    filename: str
    r2_key: str
    cdn_url: str
    cdn_url_mobile: str
    display_order: int
    is_active: bool
    object_position: Optional[str] = None
    mobile_visible: Optional[int] = None
    alt_text: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    name: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PublicSlideResponse(BaseModel):
    id: int
    cdn_url: str
    cdn_url_mobile: str
    object_position: str
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class PublicGalleryImageResponse(BaseModel):
    id: int
    cdn_url: str
    cdn_url_mobile: str
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class PublicLogoResponse(BaseModel):
    id: int
    cdn_url: str
    alt_text: Optional[str] = None
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class PublicServiceResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    cdn_url: str
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class PublicTeamMemberResponse(BaseModel):
    id: int
    name: str
    position: Optional[str] = None
    bio: Optional[str] = None
    cdn_url: str
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class ContentReferenceRequest(BaseModel):
    """
    JSON body for creating or updating a content item from an image
    already in storage. Collection fields are ignored where not applicable.
    """
    r2_key: Optional[str] = None
    cdn_url: Optional[str] = None
    cdn_url_mobile: Optional[str] = None
    filename: Optional[str] = None
    object_position: Optional[str] = None
    mobile_visible: Optional[bool] = None
    alt_text: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    name: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None


class ReorderRequest(BaseModel):
    """
    Request schema for the reorder operation.
    Contains the complete list of item IDs in the desired display order.
    """
    order: list[int]

    @field_validator('order')
    @classmethod
    def validate_unique_ids(cls, v):
        if len(v) != len(set(v)):
            raise ValueError('Duplicate item IDs are not allowed')
        return v


class IdListRequest(BaseModel):
    ids: list[int] = Field(min_length=1)


class MobileVisibilityRequest(BaseModel):
    visible: bool


class LoginRequest(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    is_active: bool
    is_super_admin: bool
    assigned_regions: List[str] = []
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(min_length=3)
    full_name: Optional[str] = None
    password: str
    is_super_admin: bool = False
    assigned_regions: List[str] = []


class UserUpdate(BaseModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    is_active: Optional[bool] = None
    is_super_admin: Optional[bool] = None
    assigned_regions: Optional[List[str]] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    """Self-service profile fields; omitted fields are left unchanged."""
    full_name: Optional[str] = Field(default=None, alias="fullName")
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1, alias="currentPassword")
    new_password: str = Field(min_length=1, alias="newPassword")

    model_config = ConfigDict(populate_by_name=True)


class RegionResponse(BaseModel):
    code: str
    name: str
    domain: Optional[str] = None
    route: Optional[str] = None
    is_active: bool
    is_default: bool

    model_config = ConfigDict(from_attributes=True)


class RegionCreate(BaseModel):
    code: str
    name: str
    domain: Optional[str] = None
    route: Optional[str] = None
    copy_from_region: Optional[str] = Field(default=None, alias="copyFromRegion")

    model_config = ConfigDict(populate_by_name=True)


class RegionUpdate(BaseModel):
    name: Optional[str] = None
    domain: Optional[str] = None
    route: Optional[str] = None


class RegionStatusUpdate(BaseModel):
    is_active: bool


class MyRegionsResponse(BaseModel):
    available_regions: List[RegionResponse] = Field(serialization_alias="availableRegions")
    is_super_admin: bool = Field(serialization_alias="isSuperAdmin")


class ActivityLogResponse(BaseModel):
    id: int
    admin_id: Optional[int] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    action_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    description: Optional[str] = None
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class LogPagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool = Field(serialization_alias="hasMore")


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogResponse]
    pagination: LogPagination


class StoredImageResponse(BaseModel):
    id: int
    filename: str
    r2_key: str
    cdn_url: str
    cdn_url_mobile: str
    category: str
    file_size: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StoredImageRename(BaseModel):
    filename: str = Field(min_length=1)
