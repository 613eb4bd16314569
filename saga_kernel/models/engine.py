"""Turn engine configuration."""

from pydantic import BaseModel


class TurnEngineConfig(BaseModel):
    """Configuration for the Turn Engine."""

    gm_model: str = "gpt-5.2"
    npc_model: str = "gpt-5-mini"
    narrator_model: str = "gpt-5-mini"
    max_gm_iterations: int = 8
    default_player_id: str = "player-1"
    include_trace: bool = False
    narrator_style: str = "plain"

    @classmethod
    def from_settings(cls, settings) -> "TurnEngineConfig":
        return cls(
            gm_model=settings.gm_model,
            npc_model=settings.npc_model,
            narrator_model=settings.narrator_model,
            max_gm_iterations=settings.max_gm_iterations,
            default_player_id=settings.default_player_id,
            include_trace=settings.include_trace,
            narrator_style=settings.narrator_style,
        )
