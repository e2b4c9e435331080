"""Configuration management using Pydantic Settings."""
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DecoderSettings(BaseSettings):
    """Stream decoder policy, loaded from FDD_DECODER_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="FDD_DECODER_")

    strict_checksum: bool = Field(
        default=False,
        description="Expect an XOR payload checksum byte after each frame and drop frames that do not match",
    )
    validate_program_length: bool = Field(
        default=False,
        description="Treat program headers whose program length exceeds the data length as malformed",
    )


class SerialSettings(BaseSettings):
    """Serial link to the drive, loaded from FDD_SERIAL_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="FDD_SERIAL_")

    port: Optional[str] = Field(default=None, description="Serial device, e.g. /dev/ttyUSB0")
    baudrate: int = Field(default=19200, description="Line speed")
    bytesize: int = Field(default=8, description="Data bits")
    parity: Literal["N", "E", "O"] = Field(default="E", description="Parity (N, E or O)")
    stopbits: int = Field(default=1, description="Stop bits")
    rtscts: bool = Field(default=True, description="RTS/CTS hardware flow control")
    dsrdtr: bool = Field(default=True, description="DTR/DSR hardware flow control")
    read_size: int = Field(default=1024, ge=1, description="Maximum bytes per read")
