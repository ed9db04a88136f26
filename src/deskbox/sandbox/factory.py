"""Provider registry: provision sandboxes and build templates by provider name."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping

from deskbox.config import Settings, get_settings
from deskbox.sandbox.interfaces import SandboxBackend, SandboxProvider
from deskbox.shared.enums import Provider
from deskbox.shared.exceptions import ProviderError, TemplateBuildError
from deskbox.shared.models import TemplateResources

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Settings], SandboxProvider]


def _e2b(settings: Settings) -> SandboxProvider:
    from deskbox.sandbox.e2b import E2BProvider

    return E2BProvider(api_key=settings.e2b_api_key, timeout=settings.sandbox_timeout_seconds)


def _daytona(settings: Settings) -> SandboxProvider:
    from deskbox.sandbox.daytona import DaytonaProvider

    return DaytonaProvider(
        api_key=settings.daytona_api_key,
        api_url=settings.daytona_api_url,
        target=settings.daytona_target,
    )


def _docker(settings: Settings) -> SandboxProvider:
    from deskbox.sandbox.docker import DockerProvider

    return DockerProvider(
        host=settings.docker_host,
        network=settings.docker_network,
        exposed_ports=tuple(dict.fromkeys((settings.novnc_port, *settings.docker_exposed_ports))),
    )


# SDK imports are deferred so only the selected provider's SDK must be importable.
_PROVIDERS: dict[str, ProviderFactory] = {
    Provider.E2B.value: _e2b,
    Provider.DAYTONA.value: _daytona,
    Provider.DOCKER.value: _docker,
}


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Register (or replace) a provider factory under ``name``."""
    _PROVIDERS[name.lower()] = factory


def available_providers() -> list[str]:
    return sorted(_PROVIDERS)


def get_provider(name: str, settings: Settings | None = None) -> SandboxProvider:
    """Instantiate the provider registered under ``name``.

    Raises:
        ProviderError: If no provider is registered under that name.
    """
    factory = _PROVIDERS.get(name.lower())
    if factory is None:
        raise ProviderError(f"unsupported provider {name!r}; available: {', '.join(available_providers())}")
    return factory(settings or get_settings())


async def create_sandbox(
    provider: str,
    *,
    template: str,
    envs: Mapping[str, str] | None = None,
    resources: TemplateResources | None = None,
    settings: Settings | None = None,
) -> SandboxBackend:
    """Provision a sandbox from ``template`` on ``provider``."""
    backend = get_provider(provider, settings)
    logger.info("provisioning %s sandbox from template %s", provider, template)
    return await backend.create(template=template, envs=dict(envs or {}), resources=resources)


async def build_template(
    provider: str,
    directory: str,
    name: str,
    resources: TemplateResources | None = None,
    *,
    settings: Settings | None = None,
) -> None:
    """Build a provider-specific template from a directory holding a ``Dockerfile``.

    Raises:
        TemplateBuildError: If the directory has no Dockerfile or the build fails.
        ProviderError: If the provider is unknown or unauthenticated.
    """
    if not os.path.isfile(os.path.join(directory, "Dockerfile")):
        raise TemplateBuildError(f"no Dockerfile in {directory}")
    backend = get_provider(provider, settings)
    logger.info("building %s template %s from %s", provider, name, directory)
    await backend.build_template(directory, name, resources)
