"""SellLink configuration loader."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class GeminiConfig:
    """Gemini API settings."""

    api_key: str = ""
    model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.0-flash-preview-image-generation"


@dataclass
class BackendUrls:
    """Optional self-hosted or serverless capability endpoints."""

    remove_bg_function: str = ""
    remove_bg_proxy: str = ""
    detect_function: str = ""
    copy_function: str = ""
    price_function: str = ""


@dataclass
class SellLinkConfig:
    """Main configuration for SellLink."""

    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    clipdrop_api_key: str = ""
    clipdrop_url: str = "https://clipdrop-api.co/remove-background/v1"
    backends: BackendUrls = field(default_factory=BackendUrls)

    host: str = "127.0.0.1"
    port: int = 8080
    public_url: str = "http://localhost:8080"

    # ":memory:" keeps shared listings for the life of the process only
    share_db_path: str = ":memory:"
    export_dir: str = ".selllink/exports"

    http_timeout: float = 60.0

    @classmethod
    def load(cls, config_path: str = ".selllink/config.yaml") -> "SellLinkConfig":
        """Load config from YAML file, then apply environment overrides.

        Args:
            config_path: Path to config file (relative or absolute)

        Returns:
            Loaded configuration
        """
        path = Path(config_path)
        data: dict = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

        gemini_data = data.get("gemini", {}) or {}
        clipdrop_data = data.get("clipdrop", {}) or {}
        backend_data = data.get("backends", {}) or {}
        server_data = data.get("server", {}) or {}
        share_data = data.get("share", {}) or {}
        http_data = data.get("http", {}) or {}

        config = cls(
            gemini=GeminiConfig(
                api_key=gemini_data.get("api_key", ""),
                model=gemini_data.get("model", "gemini-2.5-flash"),
                image_model=gemini_data.get(
                    "image_model", "gemini-2.0-flash-preview-image-generation"
                ),
            ),
            clipdrop_api_key=clipdrop_data.get("api_key", ""),
            clipdrop_url=clipdrop_data.get("url", "https://clipdrop-api.co/remove-background/v1"),
            backends=BackendUrls(
                remove_bg_function=backend_data.get("remove_bg_function", ""),
                remove_bg_proxy=backend_data.get("remove_bg_proxy", ""),
                detect_function=backend_data.get("detect_function", ""),
                copy_function=backend_data.get("copy_function", ""),
                price_function=backend_data.get("price_function", ""),
            ),
            host=server_data.get("host", "127.0.0.1"),
            port=server_data.get("port", 8080),
            public_url=server_data.get("public_url", "http://localhost:8080"),
            share_db_path=share_data.get("db_path", ":memory:"),
            export_dir=share_data.get("export_dir", ".selllink/exports"),
            http_timeout=http_data.get("timeout", 60.0),
        )
        config.apply_env()
        return config

    def apply_env(self, environ: dict[str, str] | None = None) -> None:
        """Override settings from environment variables.

        Args:
            environ: Mapping to read instead of os.environ
        """
        env = os.environ if environ is None else environ

        api_key = env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY") or env.get("VITE_API_KEY")
        if api_key:
            self.gemini.api_key = api_key
        if env.get("CLIPDROP_API_KEY"):
            self.clipdrop_api_key = env["CLIPDROP_API_KEY"]

        overrides = {
            "REMOVE_BG_FUNCTION_URL": "remove_bg_function",
            "REMOVE_BG_PROXY_URL": "remove_bg_proxy",
            "DETECT_FUNCTION_URL": "detect_function",
            "COPY_FUNCTION_URL": "copy_function",
            "PRICE_FUNCTION_URL": "price_function",
        }
        for var, attr in overrides.items():
            if env.get(var):
                setattr(self.backends, attr, env[var])

        if env.get("SELLLINK_PUBLIC_URL"):
            self.public_url = env["SELLLINK_PUBLIC_URL"]
        if env.get("SELLLINK_SHARE_DB"):
            self.share_db_path = env["SELLLINK_SHARE_DB"]
        if env.get("SELLLINK_EXPORT_DIR"):
            self.export_dir = env["SELLLINK_EXPORT_DIR"]

    def missing_keys(self) -> list[str]:
        """Names of API keys that are not set."""
        missing = []
        if not self.gemini.api_key:
            missing.append("GEMINI_API_KEY")
        if not self.clipdrop_api_key:
            missing.append("CLIPDROP_API_KEY")
        return missing
