from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field  # type: ignore
from typing import Annotated


class GameServerSettings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False)

    host: Annotated[str, Field(validation_alias="HOST")] = "0.0.0.0"
    port: Annotated[int, Field(validation_alias="PORT")] = 3000
    cors_allow_origins: Annotated[
        str, Field(validation_alias="CORS_ALLOW_ORIGINS")
    ] = "*"
    # seconds of pacing around AI actions (presentation only)
    ai_action_delay: Annotated[
        float, Field(ge=0, validation_alias="AI_ACTION_DELAY")
    ] = 1.0
    ai_turn_end_delay: Annotated[
        float, Field(ge=0, validation_alias="AI_TURN_END_DELAY")
    ] = 1.5
    max_lobby_players: Annotated[
        int, Field(ge=2, le=8, validation_alias="MAX_LOBBY_PLAYERS")
    ] = 8
