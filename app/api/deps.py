from fastapi import Depends, Request

from app.services.auth_dependencies import require_web_auth
from app.services.crud_orchestrator import CrudOrchestrator
from app.services.display_settings import ConfigDisplaySettingsProvider, DisplaySettingsProvider
from app.services.resource_catalog import ResourceWorkspace
from app.services.resource_config import ResourceConfig, ResourceRegistry
from app.view_sessions import get_view_session


def get_current_user(auth=Depends(require_web_auth)):
    """Get current authenticated actor info."""
    return auth


def get_workspace(request: Request) -> ResourceWorkspace:
    workspace = getattr(request.app.state, "workspace", None)
    if workspace is None:
        workspace = ResourceWorkspace()
        request.app.state.workspace = workspace
    return workspace


def get_display_provider(request: Request) -> DisplaySettingsProvider:
    provider = getattr(request.app.state, "display_provider", None)
    if provider is None:
        provider = ConfigDisplaySettingsProvider()
        request.app.state.display_provider = provider
    return provider


def get_resource_config(resource_key: str) -> ResourceConfig:
    return ResourceRegistry.get(resource_key)


async def get_orchestrator(
    config: ResourceConfig = Depends(get_resource_config),
    workspace: ResourceWorkspace = Depends(get_workspace),
    view_session: str = Depends(get_view_session),
) -> CrudOrchestrator:
    """Orchestrator holding the caller's table state for this resource."""
    return await workspace.orchestrator(config.key, session=view_session)


__all__ = [
    "get_current_user",
    "get_display_provider",
    "get_orchestrator",
    "get_resource_config",
    "get_workspace",
]
