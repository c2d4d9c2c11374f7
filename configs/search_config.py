# vibesearch/configs/search_config.py
from __future__ import annotations
import logging
import os
import pathlib
import re
from typing import Any, Dict, Final, Mapping, Optional, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__: Sequence[str] = ('VibeSearchConfig', 'DEFAULT_MODEL', 'DEFAULT_CONFIG_PATH')
logger = logging.getLogger(__name__)

DEFAULT_MODEL: Final[str] = 'gpt-4o'
DEFAULT_CONFIG_PATH: Final[pathlib.Path] = pathlib.Path(__file__).parent / 'default' / 'search_config.yaml'
_SECTION_KEY: Final[str] = 'vibesearch'

_RE_ENV_DEFAULT: Final[re.Pattern[str]] = re.compile('\\$\\{([A-Za-z_][A-Za-z0-9_]*):?-(.*?)\\}')


def _interpolate_env(value: str) -> str:
    if not isinstance(value, str):
        return value

    def _repl(match: re.Match[str]) -> str:
        var, default = (match.group(1), match.group(2))
        return os.getenv(var, default)

    before = value
    value = _RE_ENV_DEFAULT.sub(_repl, value)
    value = os.path.expandvars(value)

    if before != value:
        logger.debug("Env expand: '%s' → '%s'", before, value)
    elif '${' in before and ':-' not in before:
        logger.warning("Unresolved env var in '%s'", before)

    return value


def _expand_tree(node: Any) -> Any:
    if isinstance(node, dict):
        return {k: _expand_tree(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_expand_tree(v) for v in node]
    if isinstance(node, str):
        return _interpolate_env(node)
    return node


class VibeSearchConfig(BaseModel):
    model_config = ConfigDict(extra='forbid', validate_assignment=True, protected_namespaces=())

    model: str = Field(DEFAULT_MODEL, min_length=1, description='Chat model used to answer search frames.')
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0, description='Sampling temperature (None = provider default).')
    max_tokens: Optional[int] = Field(None, ge=1, description='Upper bound on tokens generated for the reply.')
    use_caching: bool = Field(False, description='Send a stable prompt_cache_key so repeated frames hit the provider prompt cache.')
    api_key: Optional[str] = Field(None, repr=False, description='Explicit API key; takes precedence over api_key_env.')
    api_key_env: str = Field('OPENAI_API_KEY', min_length=1, description='Environment variable holding the API key.')
    base_url: str = Field('https://api.openai.com/v1', min_length=1, description='Root of the OpenAI-compatible API.')
    timeout: float = Field(30.0, gt=0.0, le=600.0, description='Per-request HTTP timeout in seconds.')

    @field_validator('base_url')
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(('http://', 'https://')):
            raise ValueError(f'base_url must be an http(s) URL, got {v!r}')
        return v.rstrip('/')

    @field_validator('api_key')
    @classmethod
    def _blank_key_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    # Builder helpers -------------------------------------------------------
    def copy_for(self, **overrides: Any) -> 'VibeSearchConfig':
        return type(self).model_validate({**self.model_dump(), **overrides})

    def with_model(self, model: str) -> 'VibeSearchConfig':
        return self.copy_for(model=model)

    def with_temperature(self, temperature: float) -> 'VibeSearchConfig':
        return self.copy_for(temperature=temperature)

    def with_max_tokens(self, max_tokens: int) -> 'VibeSearchConfig':
        return self.copy_for(max_tokens=max_tokens)

    def with_caching(self, use_caching: bool) -> 'VibeSearchConfig':
        return self.copy_for(use_caching=use_caching)

    def with_api_key(self, api_key: str) -> 'VibeSearchConfig':
        return self.copy_for(api_key=api_key)

    # Accessors -------------------------------------------------------------
    def resolve_api_key(self) -> Optional[str]:
        return self.api_key or os.getenv(self.api_key_env) or None

    def to_request_settings(self) -> Dict[str, Any]:
        settings: Dict[str, Any] = {'model': self.model}
        if self.temperature is not None:
            settings['temperature'] = self.temperature
        if self.max_tokens is not None:
            settings['max_tokens'] = self.max_tokens
        return settings

    # Loading ---------------------------------------------------------------
    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'VibeSearchConfig':
        raw = dict(data or {})
        if isinstance(raw.get(_SECTION_KEY), Mapping):
            raw = dict(raw[_SECTION_KEY])
        return cls(**_expand_tree(raw))

    @classmethod
    def from_yaml(cls, path: str | pathlib.Path) -> 'VibeSearchConfig':
        file_path = pathlib.Path(path).expanduser()
        with file_path.open('r', encoding='utf-8') as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ValueError(f'{file_path} does not contain a top-level mapping')
        logger.debug('Loaded search config from %s', file_path)
        return cls.from_mapping(data)

    @classmethod
    def load_default(cls) -> 'VibeSearchConfig':
        if DEFAULT_CONFIG_PATH.exists():
            return cls.from_yaml(DEFAULT_CONFIG_PATH)
        return cls()
