"""Action identifiers and the request payload each action accepts."""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveNumber = Annotated[Union[StrictInt, StrictFloat], Field(gt=0)]


class Action(str, Enum):
    USER_ADD = "user_add"
    USER_DELETE = "user_delete"
    USER_INFO = "user_info"
    USER_INFO_ALL = "user_info_all"
    USER_ROLE = "user_role"
    PANEL_HEALTH = "panel_health"
    PANEL_CREATE = "panel_create"
    PANEL_DELETE = "panel_delete"
    PANEL_DELETE_ALL = "panel_delete_all"
    PANEL_CURRENT = "panel_current"


class ActionRequest(BaseModel):
    """Base payload. Unknown keys (including `action` itself) are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EmptyRequest(ActionRequest):
    pass


class EmailRequest(ActionRequest):
    email: NonEmptyStr


class UserAddRequest(ActionRequest):
    email: NonEmptyStr
    password: Optional[str] = None
    active_days: Optional[PositiveNumber] = Field(default=None, alias="activeDays")
    role: Optional[str] = None
    money: Optional[Annotated[StrictInt, Field(ge=0)]] = None


class UserRoleRequest(ActionRequest):
    email: NonEmptyStr
    role: NonEmptyStr


class PanelCreateRequest(ActionRequest):
    email: NonEmptyStr
    username: NonEmptyStr
    password: NonEmptyStr
    ram: Union[Annotated[StrictInt, Field(gt=0)], NonEmptyStr]


class PanelDeleteRequest(ActionRequest):
    email: NonEmptyStr
    user_id: Union[StrictInt, StrictFloat, NonEmptyStr] = Field(alias="userId")
    server_id: Union[StrictInt, StrictFloat, NonEmptyStr] = Field(alias="serverId")
