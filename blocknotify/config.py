from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from .render import RenderMode


class Settings(BaseSettings):
    # Daemon notification endpoint (e.g. bitcoind -zmqpubhashblock=tcp://127.0.0.1:28332)
    endpoint: str = "tcp://127.0.0.1:28332"
    topics: list[str] = Field(default_factory=lambda: ["hashblock", "hashtx", "rawblock", "rawtx"])

    # Payload rendering for consumers
    render_mode: RenderMode = RenderMode.HEX

    # ZMQ tuning (basic)
    rcvhwm: int = 10000
    linger_ms: int = 0
    poll_interval_ms: int = 100
    monitor_connection: bool = True
    disconnect_is_fatal: bool = True

    # Sequence gap policy
    track_gaps: bool = True
    sequence_wraparound: bool = True
    reset_gaps_on_reconnect: bool = True

    # HTTP/WS server
    http_host: str = "0.0.0.0"
    http_port: int = 8080

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Event buffering and backpressure
    client_queue_size: int = 1000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_prefix = "BLOCKNOTIFY_"
        env_file = ".env"
        extra = "ignore"

    def transport_options(self) -> dict:
        return {
            "rcvhwm": self.rcvhwm,
            "linger_ms": self.linger_ms,
            "monitor": self.monitor_connection,
            "disconnect_is_fatal": self.disconnect_is_fatal,
        }
