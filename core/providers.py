import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from openai import AsyncOpenAI

log = logging.getLogger(__name__)

PROVIDERS_PATH = Path(__file__).with_name("providers.yaml")
KEYLESS_PLACEHOLDER = "not-needed"


@dataclass(frozen=True)
class Provider:
    name: str
    base_url: Optional[str] = None
    env_key: Optional[str] = None


def load_providers(path: Path = PROVIDERS_PATH) -> List[Provider]:
    payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    providers: List[Provider] = []
    for item in payload.get("providers") or []:
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        providers.append(
            Provider(
                name=name,
                base_url=item.get("base_url") or None,
                env_key=item.get("env_key") or None,
            )
        )
    return providers


DEFAULT_PROVIDERS = load_providers()


def parse_model(selector: str) -> Optional[Tuple[str, str]]:
    """Split ``provider/model`` at the first slash."""

    provider, sep, model = selector.partition("/")
    if not sep or not provider or not model:
        return None
    return provider, model


def find_provider(name: str, providers: Optional[List[Provider]] = None) -> Optional[Provider]:
    for provider in DEFAULT_PROVIDERS if providers is None else providers:
        if provider.name == name:
            return provider
    return None


def resolve_api_key(provider: Provider, override: Optional[str] = None) -> str:
    if override:
        return override
    if provider.env_key:
        key = os.getenv(provider.env_key, "")
        if not key:
            log.warning("%s is not set; requests to %s will likely fail", provider.env_key, provider.name)
        return key
    return KEYLESS_PLACEHOLDER


def build_client(provider: Provider, api_key: str) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key, base_url=provider.base_url)
