"""
Tests for the lightweight settings base class.
"""

from typing import List, Optional

import pytest

from services.common.settings import (
    AliasChoices,
    BaseSettings,
    Field,
    SettingsConfigDict,
)


class ExampleSettings(BaseSettings):
    base_url: str = Field(
        default="http://localhost", validation_alias=AliasChoices("EXAMPLE_BASE")
    )
    port: int = Field(default=4000, validation_alias=AliasChoices("EXAMPLE_PORT"))
    ratio: float = Field(default=0.5)
    enabled: bool = Field(default=False, validation_alias="EXAMPLE_ENABLED")
    tags: List[str] = Field(default=[])
    offset: Optional[int] = Field(default=None)

    model_config = SettingsConfigDict(case_sensitive=False)


class RequiredSettings(BaseSettings):
    token: str = Field(..., validation_alias=AliasChoices("EXAMPLE_TOKEN"))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "EXAMPLE_BASE",
        "EXAMPLE_PORT",
        "EXAMPLE_ENABLED",
        "EXAMPLE_TOKEN",
        "RATIO",
        "TAGS",
        "OFFSET",
    ):
        monkeypatch.delenv(name, raising=False)


class TestBaseSettings:
    def test_defaults(self):
        settings = ExampleSettings()

        assert settings.base_url == "http://localhost"
        assert settings.port == 4000
        assert settings.enabled is False
        assert settings.offset is None

    def test_environment_aliases(self, monkeypatch):
        monkeypatch.setenv("EXAMPLE_BASE", "http://backend:5556")
        monkeypatch.setenv("EXAMPLE_PORT", "8080")
        monkeypatch.setenv("EXAMPLE_ENABLED", "true")

        settings = ExampleSettings()

        assert settings.base_url == "http://backend:5556"
        assert settings.port == 8080
        assert settings.enabled is True

    def test_field_name_is_a_fallback_env_name(self, monkeypatch):
        monkeypatch.setenv("RATIO", "0.25")
        monkeypatch.setenv("OFFSET", "3")

        settings = ExampleSettings()

        assert settings.ratio == 0.25
        assert settings.offset == 3

    @pytest.mark.parametrize(
        "raw,expected",
        [("a,b, c", ["a", "b", "c"]), ('["x", "y"]', ["x", "y"]), ("", [])],
    )
    def test_list_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("TAGS", raw)

        assert ExampleSettings().tags == expected

    @pytest.mark.parametrize("raw", ["1", "yes", "ON", "True"])
    def test_truthy_booleans(self, monkeypatch, raw):
        monkeypatch.setenv("EXAMPLE_ENABLED", raw)

        assert ExampleSettings().enabled is True

    def test_kwargs_override_environment(self, monkeypatch):
        monkeypatch.setenv("EXAMPLE_PORT", "8080")

        assert ExampleSettings(port=9000).port == 9000

    def test_required_field(self, monkeypatch):
        with pytest.raises(ValueError):
            RequiredSettings()

        monkeypatch.setenv("EXAMPLE_TOKEN", "secret")
        assert RequiredSettings().token == "secret"

    def test_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# comment\nEXAMPLE_PORT=7000\nEXAMPLE_BASE='http://from-file'\n"
        )

        class FileSettings(ExampleSettings):
            model_config = SettingsConfigDict(env_file=str(env_file))

        settings = FileSettings()
        assert settings.port == 7000
        assert settings.base_url == "http://from-file"

        # Process environment wins over the file
        monkeypatch.setenv("EXAMPLE_PORT", "7100")
        assert FileSettings().port == 7100

    def test_invalid_int(self, monkeypatch):
        monkeypatch.setenv("EXAMPLE_PORT", "not-a-number")

        with pytest.raises(ValueError):
            ExampleSettings()
