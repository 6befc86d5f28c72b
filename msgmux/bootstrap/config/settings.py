from typing import Annotated, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource

from msgmux.bootstrap.config.loader import get_configfile
from msgmux.core.routing.mux import EmptyRegistryPolicy


class MuxSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MSGMUX_",
        extra="ignore"
    )

    empty_registry: Annotated[
        EmptyRegistryPolicy,
        Field(
            description=(
                "Outcome of dispatching a message before any handler was registered.\n"
                "'succeed' treats it as a no-op (default).\n"
                "'fail' raises NoHandlerRegistered, as for any unknown message type."
            ),
            default=EmptyRegistryPolicy.SUCCEED
        )
    ]

    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        Field(
            description=(
                "Logging verbosity.\n"
                "DEBUG traces every registration and dispatch."
            ),
            default="INFO"
        )
    ]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: tuple[PydanticBaseSettingsSource, ...] = (init_settings, env_settings)

        configfile = get_configfile()
        if configfile is not None:
            sources += (YamlConfigSettingsSource(settings_cls, yaml_file=configfile),)

        return sources
