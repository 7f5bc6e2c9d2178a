import logging
from typing import Any

from fastapi import APIRouter

from service.core.exception_handler import common_exception_handler
from service.core.ml.utils.config import capability_registry
from service.system.handler import get_capability_info, get_system_status

logger = logging.getLogger(__name__)

SYSTEM_PREFIX = "/v1/system"

router = APIRouter(prefix=SYSTEM_PREFIX, tags=["system"])


@router.get(
    "/capabilities",
    summary="Get available remote capabilities",
    description="List enabled prediction capabilities used by the metric evaluators",
)
async def get_available_capabilities() -> dict[str, Any]:
    available = capability_registry.list_available()
    return {"available_capabilities": available, "total_available": len(available)}


@router.get(
    "/capabilities/all",
    summary="Get all capability configurations",
    description="Get all capability configurations including disabled ones (admin endpoint)",
)
async def get_all_capabilities() -> dict[str, Any]:
    return {
        "all_capabilities": capability_registry.list_all(),
        "available_capabilities": capability_registry.list_available(),
    }


@router.get(
    "/capabilities/{name}",
    summary="Get information for a specific capability",
    description="Get the specification and effective polling budget of a capability",
)
@common_exception_handler
async def get_capability(name: str) -> dict[str, Any]:
    return get_capability_info(name)


@router.get(
    "/status",
    summary="Get system status",
    description="Get the active scoring configuration (admin endpoint)",
)
async def get_status() -> dict[str, Any]:
    return get_system_status()
