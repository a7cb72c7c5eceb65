import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .providers import Provider, find_provider, parse_model, resolve_api_key

log = logging.getLogger(__name__)

TOKEN_ENV = "DISCORD_BOT_TOKEN"
MODEL_ENV = "YAGI_MODEL"
DEFAULT_MODEL = "openai/gpt-4.1-nano"
DEFAULT_DATA_DIR = Path.home() / ".config" / "yagi-discord-bot"


class ConfigError(Exception):
    """Startup configuration is unusable."""


@dataclass
class Settings:
    token: str
    provider: Provider
    model: str
    api_key: str
    prefix: str
    identity_path: Path
    data_dir: Path
    language: str = "ja"
    log_level: str = "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discord bot backed by an OpenAI-compatible chat engine")
    parser.add_argument("--token", default=os.getenv(TOKEN_ENV, ""), help="Discord bot token")
    parser.add_argument(
        "--model",
        default=os.getenv(MODEL_ENV, ""),
        help=f"Provider/model (e.g. {DEFAULT_MODEL})",
    )
    parser.add_argument("--key", default="", help="API key (overrides environment variable)")
    parser.add_argument("--prefix", default="!", help="Command prefix")
    parser.add_argument("--identity", default="", help="Path to identity file (default: <data>/IDENTITY.md)")
    parser.add_argument("--data", default=str(DEFAULT_DATA_DIR), help="Data directory for session storage")
    parser.add_argument("--lang", default=os.getenv("YAGI_LANG", "ja"), help="Language of user-facing notices")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"), help="Logging level")
    return parser


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    load_dotenv()
    args = build_parser().parse_args(argv)

    if not args.token:
        raise ConfigError(f"Discord bot token is required: set {TOKEN_ENV} or use --token")
    # Blank the variable once the token has been read.
    os.environ[TOKEN_ENV] = ""

    selector = args.model or DEFAULT_MODEL
    parsed = parse_model(selector)
    if parsed is None:
        raise ConfigError(f"Invalid model format: {selector} (use provider/model)")
    provider_name, model_name = parsed
    provider = find_provider(provider_name)
    if provider is None:
        raise ConfigError(f"Unknown provider: {provider_name}")

    data_dir = Path(args.data).expanduser()
    identity_path = Path(args.identity).expanduser() if args.identity else data_dir / "IDENTITY.md"
    return Settings(
        token=args.token,
        provider=provider,
        model=model_name,
        api_key=resolve_api_key(provider, args.key),
        prefix=args.prefix,
        identity_path=identity_path,
        data_dir=data_dir,
        language=args.lang,
        log_level=args.log_level.upper(),
    )


def load_identity(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as exc:
        log.warning("failed to read identity file %s: %s", path, exc)
        return ""
