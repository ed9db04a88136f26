"""Tests for the provider registry."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from deskbox.config import Settings
from deskbox.sandbox import factory
from deskbox.sandbox.daytona import DaytonaProvider
from deskbox.sandbox.docker import DockerProvider
from deskbox.sandbox.e2b import E2BProvider
from deskbox.sandbox.interfaces import SandboxProvider
from deskbox.shared.exceptions import ProviderError, TemplateBuildError
from deskbox.shared.models import TemplateResources


@pytest.fixture()
def fake_provider(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    provider = MagicMock()
    provider.create = AsyncMock(return_value="sandbox")
    provider.build_template = AsyncMock()
    monkeypatch.setitem(factory._PROVIDERS, "fake", lambda settings: provider)
    return provider


class TestGetProvider:
    @pytest.mark.parametrize(
        ("name", "cls"),
        [("e2b", E2BProvider), ("daytona", DaytonaProvider), ("DOCKER", DockerProvider)],
    )
    def test_builtin_providers(self, name: str, cls: type, settings: Settings) -> None:
        provider = factory.get_provider(name, settings)
        assert isinstance(provider, cls)
        assert isinstance(provider, SandboxProvider)

    def test_unknown_provider(self, settings: Settings) -> None:
        with pytest.raises(ProviderError, match="unsupported provider 'modal'"):
            factory.get_provider("modal", settings)

    def test_available(self) -> None:
        assert factory.available_providers() == ["daytona", "docker", "e2b"]

    def test_register(self, monkeypatch: pytest.MonkeyPatch, settings: Settings) -> None:
        monkeypatch.setattr(factory, "_PROVIDERS", dict(factory._PROVIDERS))
        marker = object()

        factory.register_provider("Custom", lambda s: marker)

        assert factory.get_provider("custom", settings) is marker
        assert "custom" in factory.available_providers()


class TestCreateSandbox:
    async def test_delegates(self, fake_provider: MagicMock, settings: Settings) -> None:
        resources = TemplateResources(cpu_count=2)

        sandbox = await factory.create_sandbox(
            "fake", template="desk", envs={"DISPLAY": ":0"}, resources=resources, settings=settings
        )

        assert sandbox == "sandbox"
        fake_provider.create.assert_awaited_once_with(template="desk", envs={"DISPLAY": ":0"}, resources=resources)


class TestBuildTemplate:
    async def test_requires_dockerfile(self, tmp_path, fake_provider: MagicMock, settings: Settings) -> None:
        with pytest.raises(TemplateBuildError, match="no Dockerfile"):
            await factory.build_template("fake", str(tmp_path), "desk", settings=settings)
        fake_provider.build_template.assert_not_awaited()

    async def test_delegates(self, tmp_path, fake_provider: MagicMock, settings: Settings) -> None:
        (tmp_path / "Dockerfile").write_text("FROM ubuntu:22.04\n")

        await factory.build_template("fake", str(tmp_path), "desk", settings=settings)

        fake_provider.build_template.assert_awaited_once_with(str(tmp_path), "desk", None)
