"""
Input validation schemas using Pydantic v2
Validates duel commands and game configuration at the API boundary
"""

import logging
import re
from typing import Dict, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

MIN_STATIONS = 1
MAX_STATIONS = 12
DISC_COUNTS = (1, 3, 5)
GAME_MODES = ("solo", "host")

COMMAND_TYPES = {
    "ADD_PLAYER",
    "START_GAME",
    "MARK_READY",
    "SUBMIT_SCORE",
    "UNDO_SUBMISSION",
    "END_GAME",
    "SET_STATION_COUNT",
}

# ==================== GAME CONFIGURATION ====================


class DuelGameConfig(BaseModel):
    """Ladder configuration read from the game record"""

    station_count: int = Field(
        1, description=f"Number of stations ({MIN_STATIONS}-{MAX_STATIONS}, clamped)"
    )
    mode: str = Field("host", description="'solo' or 'host'")
    disc_count: int = Field(3, description="Discs per round, bounds the made count")

    @field_validator("station_count", mode="before")
    @classmethod
    def clamp_station_count(cls, v) -> int:
        """Clamp station count into range; unparsable values fall back to 1"""
        try:
            count = int(v)
        except (TypeError, ValueError):
            count = MIN_STATIONS
        return min(MAX_STATIONS, max(MIN_STATIONS, count))

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        if v not in GAME_MODES:
            raise ValueError(f"mode must be one of {GAME_MODES}, got {v}")
        return v

    @field_validator("disc_count")
    @classmethod
    def validate_disc_count(cls, v: int) -> int:
        if v not in DISC_COUNTS:
            raise ValueError(f"disc_count must be one of {DISC_COUNTS}, got {v}")
        return v

    @model_validator(mode="after")
    def validate_solo_layout(self) -> Self:
        """Solo games always run on a single station"""
        if self.mode == "solo" and self.station_count != 1:
            logger.debug(f"Solo game requested {self.station_count} stations, using 1")
            self.station_count = 1
        return self

    model_config = ConfigDict(extra="ignore")


# ==================== COMMANDS ====================


class ValidatedDuelCmd(BaseModel):
    """Duel command with per-type required fields"""

    type: str = Field(..., min_length=1, max_length=50, description="Command type")

    playerId: Optional[str] = Field(
        None, min_length=1, max_length=255, description="Acting player id"
    )

    # ADD_PLAYER
    player: Optional[Dict] = Field(None, description="Joining player payload")

    # SUBMIT_SCORE
    made: Optional[int] = Field(None, ge=0, le=5, description="Putts made (0-5)")
    discCount: Optional[int] = Field(
        None, description="Discs per round; when present, made may not exceed it"
    )

    # UNDO_SUBMISSION
    stationIndex: Optional[int] = Field(
        None, ge=MIN_STATIONS, le=MAX_STATIONS, description="Station index (1-12)"
    )

    # SET_STATION_COUNT
    stationCount: Optional[int] = Field(
        None, ge=MIN_STATIONS, le=MAX_STATIONS, description="Station count (1-12)"
    )

    now: Optional[str] = Field(None, max_length=40, description="ISO timestamp override")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Validate command type is one of allowed types"""
        if v not in COMMAND_TYPES:
            raise ValueError(f"type must be one of {sorted(COMMAND_TYPES)}, got {v}")
        return v

    @field_validator("player")
    @classmethod
    def validate_player(cls, v: Optional[Dict]) -> Optional[Dict]:
        """Validate joining player payload format"""
        if v is None:
            return v

        player_id = v.get("id")
        if not isinstance(player_id, str) or not player_id.strip():
            raise ValueError('player "id" must be a non-empty string')

        name = v.get("name")
        if name is not None and not isinstance(name, str):
            raise ValueError('player "name" must be string')

        desired = v.get("desired_station")
        if desired is not None and (
            isinstance(desired, bool)
            or not isinstance(desired, int)
            or not MIN_STATIONS <= desired <= MAX_STATIONS
        ):
            raise ValueError(
                f'player "desired_station" must be {MIN_STATIONS}-{MAX_STATIONS}'
            )
        return v

    @model_validator(mode="after")
    def validate_command_fields(self) -> Self:
        """Validate required fields based on command type"""
        cmd_type = self.type

        if cmd_type == "ADD_PLAYER":
            if self.player is None:
                raise ValueError("ADD_PLAYER requires player")

        elif cmd_type == "MARK_READY":
            if self.playerId is None:
                raise ValueError("MARK_READY requires playerId")

        elif cmd_type == "SUBMIT_SCORE":
            if self.playerId is None:
                raise ValueError("SUBMIT_SCORE requires playerId")
            if self.made is None:
                raise ValueError("SUBMIT_SCORE requires made")
            if self.discCount is not None and self.made > self.discCount:
                raise ValueError(
                    f"made ({self.made}) cannot exceed discCount ({self.discCount})"
                )

        elif cmd_type == "UNDO_SUBMISSION":
            if self.playerId is None:
                raise ValueError("UNDO_SUBMISSION requires playerId")
            if self.stationIndex is None:
                raise ValueError("UNDO_SUBMISSION requires stationIndex")

        elif cmd_type == "SET_STATION_COUNT":
            if self.stationCount is None:
                raise ValueError("SET_STATION_COUNT requires stationCount")

        return self

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        # Strip whitespace
        value = value.strip()

        # Limit length
        value = value[:max_length]

        # Remove null bytes
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_player_name(name: str) -> str:
        """Sanitize player name for display - preserve Estonian letters (õ, ä, ö, ü, š, ž)"""
        name = InputSanitizer.sanitize_string(name, 255)

        # Remove only control characters and markup/script special chars
        dangerous_chars = r'[<>{}[\]\\|;()&$`"\*\x00-\x1f\x7f]'
        name = re.sub(dangerous_chars, "", name)

        return name.strip()

    @staticmethod
    def sanitize_game_name(name: str) -> str:
        return InputSanitizer.sanitize_string(name, 100)

    @staticmethod
    def validate_and_sanitize_cmd(cmd_dict: dict) -> ValidatedDuelCmd:
        """
        Validate and sanitize command dictionary

        Returns:
            ValidatedDuelCmd: Validated command object

        Raises:
            ValueError: If validation fails
        """
        try:
            cmd = ValidatedDuelCmd(**cmd_dict)
        except Exception as e:
            logger.warning(f"Command validation failed: {e}")
            raise ValueError(f"Invalid command: {str(e)}")
        if cmd.player is not None and isinstance(cmd.player.get("name"), str):
            cmd.player["name"] = InputSanitizer.sanitize_player_name(cmd.player["name"])
        return cmd


# ==================== EXPORT ====================

__all__ = [
    "DuelGameConfig",
    "ValidatedDuelCmd",
    "InputSanitizer",
    "COMMAND_TYPES",
    "DISC_COUNTS",
    "GAME_MODES",
    "MAX_STATIONS",
    "MIN_STATIONS",
]
