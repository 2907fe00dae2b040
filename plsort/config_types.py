"""Typed configuration dataclasses for playlist-sorter.

Provides strongly-typed configuration objects that can be used throughout
the application for better type safety and IDE support.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Dict, Any


@dataclass
class SpotifyConfig:
    """Spotify OAuth and Web API configuration."""
    client_id: str | None = None
    redirect_scheme: str = "http"
    redirect_host: str = "127.0.0.1"
    redirect_port: int = 9876
    redirect_path: str = "/callback"
    scope: str = "playlist-read-private playlist-read-collaborative playlist-modify-public playlist-modify-private"
    timeout_seconds: int = 300  # how long `login` waits for the browser redirect
    request_timeout: float = 30.0
    max_attempts: int = 4
    backoff_max: float = 30.0

    @property
    def redirect_uri(self) -> str:
        path = self.redirect_path if self.redirect_path.startswith('/') else '/' + self.redirect_path
        return f"{self.redirect_scheme}://{self.redirect_host}:{self.redirect_port}{path}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BpmConfig:
    """Fallback BPM lookup service. Disabled when api_key is unset."""
    api_key: str | None = None
    base_url: str = "https://api.getsong.co"
    max_concurrency: int = 3
    timeout_seconds: float = 10.0
    max_attempts: int = 3
    min_similarity: float = 0.8  # 0.0-1.0 scale

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PipelineConfig:
    """Aggregation pipeline limits."""
    stage_timeout: float = 120.0  # seconds per secondary source

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AppConfig:
    """Root application configuration with all subsections."""
    log_level: str = "INFO"
    state_dir: str = ".plsort"
    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    bpm: BpmConfig = field(default_factory=BpmConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to nested dictionary matching the load_config() layout."""
        return {
            "log_level": self.log_level,
            "state_dir": self.state_dir,
            "spotify": self.spotify.to_dict(),
            "bpm": self.bpm.to_dict(),
            "pipeline": self.pipeline.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Create typed config from dictionary.

        Args:
            data: Dictionary config (from load_config)

        Returns:
            Typed AppConfig instance
        """
        return cls(
            log_level=data.get("log_level", "INFO"),
            state_dir=data.get("state_dir", ".plsort"),
            spotify=SpotifyConfig(**data.get("spotify", {})),
            bpm=BpmConfig(**data.get("bpm", {})),
            pipeline=PipelineConfig(**data.get("pipeline", {})),
        )


__all__ = [
    "AppConfig",
    "SpotifyConfig",
    "BpmConfig",
    "PipelineConfig",
]
