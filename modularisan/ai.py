"""AI-assisted code generation over HTTP.

Three providers share one small interface: ``openai`` (Chat Completions),
``anthropic`` (Messages API) and ``local`` (an Ollama server).  Each one
talks to its endpoint through ``httpx.AsyncClient`` and returns a
:class:`~modularisan.scaffolder.writer.GeneratedArtifact`.  Nothing in this
module touches the filesystem directly; :meth:`AIService.save_generated_code`
hands artifacts to the :class:`~modularisan.scaffolder.writer.ArtifactWriter`.

Typical usage::

    service = AIService(config)
    if service.is_enabled():
        artifact = await service.generate_component("login-form", "Email/password form", "auth")
        await service.save_generated_code(artifact, target_dir, "login-form.tsx", dry_run=True)
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, Field

from .config import AIConfig, ProjectConfiguration
from .errors import AIProviderError
from .logger import Logger
from .scaffolder.writer import ArtifactWriter, GeneratedArtifact

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-latest",
    "local": "qwen3-coder:30b",
}

DEFAULT_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com",
    "anthropic": "https://api.anthropic.com",
    "local": "http://localhost:11434",
}

API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

ANTHROPIC_VERSION = "2023-06-01"

_FENCE_RE = re.compile(r"```([\w.+-]*)[ \t]*\n(.*?)```", re.DOTALL)

RESPONSE_FORMAT = (
    "\n\nRespond with JSON in this format:\n"
    "{\n"
    '  "code": "the generated code",\n'
    '  "explanation": "brief explanation of what the code does",\n'
    '  "suggestions": ["suggestion 1", "suggestion 2"],\n'
    '  "tests": "optional test file content",\n'
    '  "dependencies": ["package-name"]\n'
    "}"
)


class AIContext(BaseModel):
    """Project facts sent along with every generation prompt."""

    framework: str = Field(default="", description="Framework display name")
    language: str = Field(default="typescript")
    module_type: str = Field(default="", description="component | service | ...")
    naming: str = Field(default="kebab-case")
    file_extension: str = Field(default=".ts")
    paths: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def parse_generation_response(content: str) -> GeneratedArtifact:
    """Turn a model reply into a :class:`GeneratedArtifact`.

    The reply is expected to be a JSON object.  A JSON object inside a
    fenced block is accepted too.  Otherwise the first fenced code block
    (or the whole reply) becomes ``code``.
    """
    text = content.strip()
    data = _load_json_object(text)

    fences = _FENCE_RE.findall(text)
    if data is None:
        for lang, body in fences:
            if lang.lower() in ("json", ""):
                data = _load_json_object(body.strip())
                if data is not None:
                    break

    if data is not None and isinstance(data.get("code"), str):
        return GeneratedArtifact(
            code=data["code"],
            explanation=str(data.get("explanation") or ""),
            suggestions=[str(s) for s in data.get("suggestions") or []],
            tests=data.get("tests") or None,
            documentation=data.get("documentation") or None,
            dependencies=[str(d) for d in data.get("dependencies") or []],
        )

    if fences:
        return GeneratedArtifact(code=fences[0][1], explanation="Generated code (parsed from code block)")
    return GeneratedArtifact(code=text, explanation="Generated code (raw response)")


def _load_json_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def build_system_prompt(context: AIContext) -> str:
    prompt = "You are an expert software architect and developer."
    if context.framework:
        prompt += f" You are working with the {context.framework} framework."
    if context.language:
        prompt += f" The code should be in {context.language}."
    prompt += " Generate clean, production-ready code following best practices."
    return prompt


def build_user_prompt(prompt: str, context: AIContext) -> str:
    full = prompt
    if context.module_type:
        full += f"\n\nModule Type: {context.module_type}"
    if context.paths:
        full += f"\nProject Paths: {json.dumps(context.paths, sort_keys=True)}"
    return full + RESPONSE_FORMAT


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class AIProvider:
    """Base class: one HTTP round trip per :meth:`generate_code` call."""

    name = "base"

    def __init__(
        self,
        model: str | None = None,
        base_url: str | None = None,
        timeout: int = 120,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> None:
        self.model = model or DEFAULT_MODELS[self.name]
        self.base_url = (base_url or DEFAULT_BASE_URLS[self.name]).rstrip("/")
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )

    def _headers(self) -> dict[str, str]:
        return {"content-type": "application/json"}

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _payload(self, system: str, prompt: str) -> dict[str, Any]:
        raise NotImplementedError

    def _extract_text(self, data: dict[str, Any]) -> str:
        raise NotImplementedError

    async def complete(self, system: str, prompt: str) -> str:
        """Send one prompt and return the reply text.

        Raises:
            AIProviderError: On connection failure, timeout, an HTTP error
                status, or an empty reply.
        """
        details = {"provider": self.name, "model": self.model}
        try:
            async with self._client() as client:
                response = await client.post(self._endpoint(), json=self._payload(system, prompt))
                response.raise_for_status()
                data = response.json()
        except httpx.ConnectError as exc:
            raise AIProviderError(
                f"Cannot connect to {self.name} at {self.base_url}", details
            ) from exc
        except httpx.TimeoutException as exc:
            raise AIProviderError(
                f"Request to {self.name} timed out after {self.timeout}s", details
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise AIProviderError(
                f"{self.name} returned HTTP {exc.response.status_code}: {exc.response.text[:500]}",
                details,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise AIProviderError(f"{self.name} request failed: {exc}", details) from exc

        text = self._extract_text(data) if isinstance(data, dict) else ""
        if not text:
            raise AIProviderError(f"No response from {self.name}", details)
        return text

    async def generate_code(self, prompt: str, context: AIContext) -> GeneratedArtifact:
        reply = await self.complete(build_system_prompt(context), build_user_prompt(prompt, context))
        return parse_generation_response(reply)


class OpenAIProvider(AIProvider):
    name = "openai"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {**super()._headers(), "authorization": f"Bearer {self.api_key}"}

    def _endpoint(self) -> str:
        return "/v1/chat/completions"

    def _payload(self, system: str, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _extract_text(self, data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""


class AnthropicProvider(AIProvider):
    name = "anthropic"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {
            **super()._headers(),
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _endpoint(self) -> str:
        return "/v1/messages"

    def _payload(self, system: str, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def _extract_text(self, data: dict[str, Any]) -> str:
        blocks = data.get("content") or []
        return "".join(block.get("text", "") for block in blocks if block.get("type") == "text")


class LocalProvider(AIProvider):
    """Ollama's ``/api/generate``; no API key."""

    name = "local"

    def _endpoint(self) -> str:
        return "/api/generate"

    def _payload(self, system: str, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "system": system,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
        }

    def _extract_text(self, data: dict[str, Any]) -> str:
        return data.get("response", "")


def create_provider(ai: AIConfig) -> AIProvider:
    """Build the provider named by *ai*.

    Raises:
        AIProviderError: If the provider needs an API key and none is
            configured or present in the environment.
    """
    name = ai.provider or "openai"
    kwargs: dict[str, Any] = {"model": ai.model, "base_url": ai.base_url}
    if name == "local":
        return LocalProvider(**kwargs)

    env_var = API_KEY_ENV[name]
    api_key = ai.api_key or os.environ.get(env_var)
    if not api_key:
        raise AIProviderError(
            f"{name} API key not provided. Set {env_var} or ai.api_key in the configuration.",
            {"provider": name, "env": env_var},
        )
    if name == "anthropic":
        return AnthropicProvider(api_key, **kwargs)
    return OpenAIProvider(api_key, **kwargs)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AIService:
    """Builds prompts from the project configuration and routes them to a provider."""

    def __init__(
        self,
        config: ProjectConfiguration,
        logger: Logger | None = None,
        writer: ArtifactWriter | None = None,
        provider: AIProvider | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or Logger()
        self.writer = writer or ArtifactWriter(self.logger)
        self.provider = provider or self._initialize_provider()

    def _initialize_provider(self) -> AIProvider | None:
        ai = self.config.ai
        if ai is None or not ai.enabled:
            return None
        try:
            provider = create_provider(ai)
        except AIProviderError as exc:
            self.logger.error(f"Failed to initialize AI provider: {exc}")
            return None
        self.logger.info(f"AI provider initialized: {provider.name} ({provider.model})")
        return provider

    def is_enabled(self) -> bool:
        return self.provider is not None

    def _require_provider(self) -> AIProvider:
        if self.provider is None:
            raise AIProviderError(
                "AI provider not initialized. Set ai.enabled and ai.provider in the configuration.",
                {"enabled": bool(self.config.ai and self.config.ai.enabled)},
            )
        return self.provider

    def build_context(self, module_type: str) -> AIContext:
        default_ext = ".tsx" if module_type == "component" else ".ts"
        return AIContext(
            framework=self.config.framework.name,
            language="typescript" if self.config.features.typescript else "javascript",
            module_type=module_type,
            naming=self.config.conventions.naming,
            file_extension=self.config.extension(module_type, default_ext),
            paths=self.config.paths.model_dump(exclude_none=True),
        )

    async def generate_component(
        self,
        name: str,
        description: str,
        module_name: str,
        props: list[str] | None = None,
        features: list[str] | None = None,
    ) -> GeneratedArtifact:
        provider = self._require_provider()
        context = self.build_context("component")
        prompt = (
            f"Generate a {context.framework} component with the following specifications:\n\n"
            f"Component Name: {name}\n"
            f"Module: {module_name}\n"
            f"Description: {description}\n"
            f"Language: {context.language}\n"
            f"Props: {', '.join(props) if props else 'None'}\n"
            f"Features: {', '.join(features) if features else 'Basic functionality'}\n\n"
            "Project Conventions:\n"
            f"- Naming: {context.naming}\n"
            f"- File Extension: {context.file_extension}\n"
            f"- Framework: {context.framework}"
        )
        if self.config.features.testing:
            prompt += "\n\nInclude a test file in the \"tests\" field."
        with self.logger.spinner(f"Generating component {name}..."):
            return await provider.generate_code(prompt, context)

    async def generate_service(
        self,
        name: str,
        description: str,
        module_name: str,
        methods: list[str] | None = None,
        is_server: bool = False,
    ) -> GeneratedArtifact:
        provider = self._require_provider()
        context = self.build_context("service")
        prompt = (
            f"Generate a {context.framework} service with the following specifications:\n\n"
            f"Service Name: {name}\n"
            f"Module: {module_name}\n"
            f"Description: {description}\n"
            f"Language: {context.language}\n"
            f"Methods: {', '.join(methods) if methods else 'CRUD operations'}\n"
            f"Environment: {'Server-side' if is_server else 'Client-side'}\n\n"
            "Project Conventions:\n"
            f"- Naming: {context.naming}\n"
            f"- File Extension: {context.file_extension}\n"
            f"- Framework: {context.framework}"
        )
        if self.config.features.testing:
            prompt += "\n\nInclude a test file in the \"tests\" field."
        with self.logger.spinner(f"Generating service {name}..."):
            return await provider.generate_code(prompt, context)

    async def save_generated_code(
        self,
        artifact: GeneratedArtifact,
        target_dir: str | Path,
        file_name: str,
        dry_run: bool = False,
    ) -> list[Path]:
        """Write (or preview) *artifact* through the shared writer."""
        written = await self.writer.write(artifact, target_dir, file_name, dry_run=dry_run)
        if artifact.dependencies:
            self.logger.info(f"Required dependencies: {', '.join(artifact.dependencies)}")
        return written
