from __future__ import annotations
from typing import Optional, Dict, Any, List, Type, Union
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum
import yaml
import time
import logging

from pydantic import BaseModel

from .prompts import PromptManager
from .providers.base import (
    ModelProvider, ContentRequest, ImageRequest, ModelResponse, ImageResponse, InlinePart, ModelError,
)
from .providers.gemini import GeminiProvider
from .providers.openai_sdk import OpenAIProvider

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parents[1] / "config" / "config.yaml"


class Provider(Enum):
    GEMINI = "gemini"
    OPENAI = "openai"


@dataclass(frozen=True)
class TaskConfig:
    provider: str
    model: str
    params: Dict[str, Any] = field(default_factory=dict)
    prompt_ref: Optional[str] = None #e.g. "summarize/text@v1"


class ModelManager:
    """Process-wide configuration and provider registry.

    Built once at startup and handed to each pipeline. `providers` lets callers
    (tests mostly) inject ready-made provider instances by name instead of
    building them from config.
    """

    def __init__(self, config_path: Union[Path, str] = DEFAULT_CONFIG_PATH, prompts_dir: Optional[Path] = None, providers: Optional[Dict[str, ModelProvider]] = None):
        self.config_path = Path(config_path)
        self.config = self._load_config()
        self._providers: Dict[str, ModelProvider] = dict(providers or {})
        self._stats: Dict[str, Dict[str, Any]] = {}

        if prompts_dir:
            self.prompts = PromptManager(prompts_dir)
        else:
            src_root = Path(__file__).parents[1]
            self.prompts = PromptManager(src_root.parent / "prompts")

    def _load_config(self) -> Dict:
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config not found: {self.config_path}")
        with open(self.config_path) as f:
            config = yaml.safe_load(f) or {}

        if 'providers' not in config:
            raise ValueError("Config missing 'providers'")
        if 'tasks' not in config:
            raise ValueError("Config missing 'tasks'")

        for provider_name, provider_cfg in config['providers'].items():
            if provider_cfg.get('type') not in {p.value for p in Provider}:
                raise ValueError(f"Provider '{provider_name}' has unknown type '{provider_cfg.get('type')}'")

        for task_name, task_cfg in config['tasks'].items():
            if 'provider' not in task_cfg:
                raise ValueError(f"Task '{task_name}' missing provider")
            if 'model' not in task_cfg:
                raise ValueError(f"Task '{task_name}' missing model")
            if task_cfg['provider'] not in config['providers']:
                raise ValueError(f"Task '{task_name}' references unknown provider '{task_cfg['provider']}'")

        return config

    def task_config(self, task: str) -> TaskConfig:
        if task not in self.config["tasks"]:
            raise ValueError(f"Unknown task: {task}")
        task_cfg = self.config["tasks"][task]
        return TaskConfig(
            provider=task_cfg["provider"],
            model=task_cfg["model"],
            params=dict(task_cfg.get("params") or {}),
            prompt_ref=task_cfg.get("prompt"),
        )

    def _get_provider(self, provider_name: str) -> ModelProvider:
        if provider_name in self._providers:
            return self._providers[provider_name]
        if provider_name not in self.config['providers']:
            raise ValueError(f"Unknown provider: {provider_name}")

        provider_cfg = self.config["providers"][provider_name]
        provider_type = Provider(provider_cfg["type"])
        settings = provider_cfg.get("settings") or {}

        if provider_type is Provider.GEMINI:
            provider = GeminiProvider(**settings)
        else:
            provider = OpenAIProvider(**settings)
        self._providers[provider_name] = provider
        logger.info(f"initialized provider: {provider_name}")
        return provider

    def validate_credentials(self):
        """Build every configured provider now so a missing key fails at startup, not mid-request."""
        for provider_name in self.config['providers']:
            self._get_provider(provider_name)

    def build_request(self, task: str, variables: Dict[str, Any], parts: Optional[List[InlinePart]] = None, schema: Optional[Type[BaseModel]] = None, tools: Optional[List[str]] = None, prompt_ref: Optional[str] = None) -> ContentRequest:
        task_cfg = self.task_config(task)
        prompt_ref = prompt_ref or task_cfg.prompt_ref
        if not prompt_ref:
            raise ValueError(f"Task '{task}' has no prompt configured")

        prompt = self.prompts.load_prompt(prompt_ref)
        return ContentRequest(
            model=task_cfg.model,
            messages=self.prompts.render(prompt_ref, variables),
            parts=list(parts or []),
            params={**prompt.params, **task_cfg.params},
            schema=schema,
            tools=list(tools or []),
        )

    def build_image_request(self, task: str, prompt: str) -> ImageRequest:
        task_cfg = self.task_config(task)
        return ImageRequest(model=task_cfg.model, prompt=prompt, **task_cfg.params)

    async def generate(self, task: str, request: ContentRequest) -> ModelResponse:
        provider = self._get_provider(self.task_config(task).provider)
        start_time = time.perf_counter()
        try:
            response = await provider.generate(request)
        except ModelError:
            self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=False)
            raise
        self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=True)
        return response

    async def generate_image(self, task: str, request: ImageRequest) -> ImageResponse:
        provider = self._get_provider(self.task_config(task).provider)
        start_time = time.perf_counter()
        try:
            response = await provider.generate_image(request)
        except ModelError:
            self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=False)
            raise
        self._track_stats(task, (time.perf_counter() - start_time) * 1000, success=True)
        return response

    async def health(self) -> Dict[str, bool]:
        return {name: await provider.health_check() for name, provider in self._providers.items()}

    def _track_stats(self, task: str, latency_ms: float, success: bool):
        if task not in self._stats:
            self._stats[task] = {
                'total_calls': 0,
                'successful_calls': 0,
                'total_latency_ms': 0
            }

        stats = self._stats[task]
        stats['total_calls'] += 1
        if success:
            stats['successful_calls'] += 1
            stats['total_latency_ms'] += latency_ms

    def get_stats(self, task: Optional[str] = None) -> Dict:
        if task:
            return self._stats.get(task, {})
        return self._stats

    async def aclose(self):
        """Close every initialized provider's HTTP client; one failing close does not stop the rest."""
        for name, provider in self._providers.items():
            try:
                await provider.aclose()
                logger.info(f"Closed provider: {name}")
            except Exception as e:
                logger.error(f"Closing provider {name} failed: {e}")

        self._providers.clear()
