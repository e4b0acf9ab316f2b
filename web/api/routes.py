"""Single action endpoint: routes (method, action) to the ledger and panel services."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from ledger.errors import InvalidInput, LedgerError, MethodNotAllowed, NotFound
from ledger.services.panels import PanelService
from ledger.services.users import UserLedgerService
from web.api.schemas import (
    Action,
    EmailRequest,
    EmptyRequest,
    PanelCreateRequest,
    PanelDeleteRequest,
    UserAddRequest,
    UserRoleRequest,
)

logger = logging.getLogger("ledger.api")

router = APIRouter(prefix="/api", tags=["panels"])


@dataclass(frozen=True)
class Services:
    users: UserLedgerService
    panels: PanelService


Handler = Callable[[Services, Any], Awaitable[dict]]


@dataclass(frozen=True)
class ActionRoute:
    method: str
    payload: type[BaseModel]
    handler: Handler


# --- User actions ---


async def _user_add(services: Services, body: UserAddRequest) -> dict:
    user = await services.users.add_or_update_user(
        body.email,
        password=body.password,
        active_days=body.active_days,
        role=body.role,
        money=body.money,
    )
    return {"message": f"User {user['action']}", "user": user}


async def _user_delete(services: Services, body: EmailRequest) -> dict:
    user = await services.users.delete_user(body.email)
    return {"message": "User deleted", "user": user}


async def _user_info(services: Services, query: EmailRequest) -> dict:
    return {"user": await services.users.get_user(query.email)}


async def _user_info_all(services: Services, query: EmailRequest) -> dict:
    emails = await services.users.list_all_emails(query.email)
    if not emails:
        raise NotFound("No users")
    return {"emails": emails}


async def _user_role(services: Services, body: UserRoleRequest) -> dict:
    user = await services.users.update_role(body.email, body.role)
    return {"message": "User role updated", "user": user}


# --- Panel actions ---


async def _panel_health(services: Services, _: EmptyRequest) -> dict:
    return await services.panels.health()


async def _panel_create(services: Services, body: PanelCreateRequest) -> dict:
    panel = await services.panels.create_panel(body.email, body.username, body.password, body.ram)
    return {"message": "Panel created", "panel": panel}


async def _panel_delete(services: Services, body: PanelDeleteRequest) -> dict:
    await services.panels.delete_panel(body.email, body.user_id, body.server_id)
    return {"message": "Panel deleted"}


async def _panel_delete_all(services: Services, body: EmailRequest) -> dict:
    await services.users.check_admin(body.email)
    deleted = await services.panels.delete_all_panels()
    return {"message": f"All panels deleted by admin {body.email}", "deletedCount": deleted}


async def _panel_current(services: Services, query: EmailRequest) -> dict:
    return {"panels": await services.panels.list_current_panels(query.email)}


ACTIONS: dict[Action, ActionRoute] = {
    Action.USER_ADD: ActionRoute("POST", UserAddRequest, _user_add),
    Action.USER_DELETE: ActionRoute("DELETE", EmailRequest, _user_delete),
    Action.USER_INFO: ActionRoute("GET", EmailRequest, _user_info),
    Action.USER_INFO_ALL: ActionRoute("GET", EmailRequest, _user_info_all),
    Action.USER_ROLE: ActionRoute("POST", UserRoleRequest, _user_role),
    Action.PANEL_HEALTH: ActionRoute("GET", EmptyRequest, _panel_health),
    Action.PANEL_CREATE: ActionRoute("POST", PanelCreateRequest, _panel_create),
    Action.PANEL_DELETE: ActionRoute("DELETE", PanelDeleteRequest, _panel_delete),
    Action.PANEL_DELETE_ALL: ActionRoute("DELETE", EmailRequest, _panel_delete_all),
    Action.PANEL_CURRENT: ActionRoute("GET", EmailRequest, _panel_current),
}

_unrouted = set(Action) - set(ACTIONS)
if _unrouted:
    raise RuntimeError(f"Actions without a handler: {sorted(a.value for a in _unrouted)}")


def _parse_payload(model: type[BaseModel], source: dict) -> BaseModel:
    try:
        return model.model_validate(source)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise InvalidInput(f"Invalid field {field}: {first['msg']}") from e


async def dispatch(services: Services, method: str, body: dict, query: dict) -> dict:
    """Resolve the action, check its method, validate its payload and run it.

    GET actions read their fields from the query string, all others from the
    JSON body. The action name itself may come from either.
    """
    name = body.get("action") or query.get("action")
    if not name:
        raise InvalidInput("No action given")
    try:
        action = Action(name)
    except ValueError:
        raise NotFound(f'Action "{name}" not found') from None

    route = ACTIONS[action]
    if method.upper() != route.method:
        raise MethodNotAllowed(f"Method {route.method} required")
    payload = _parse_payload(route.payload, query if route.method == "GET" else body)
    return await route.handler(services, payload)


async def _read_body(request: Request) -> dict:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        raise InvalidInput("Invalid JSON") from None
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


@router.api_route("/panels", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def handle_action(request: Request) -> JSONResponse:
    """Action-based entry point for every user and panel operation."""
    services: Services = request.app.state.services
    try:
        body = await _read_body(request)
        status_code, content = 200, await dispatch(
            services, request.method, body, dict(request.query_params)
        )
    except LedgerError as e:
        if e.status_code >= 500:
            logger.error("Action failed: %s", e.message)
        status_code, content = e.status_code, e.to_body()
    except Exception:
        logger.exception("Unhandled error in action handler")
        status_code, content = 500, {"error": "Internal server error"}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))
