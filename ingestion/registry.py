"""
Source Registry

Loads and manages source configurations from sources.json.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
import json
from pathlib import Path

from .contracts import PayloadFormat, SourceConfig


DEFAULT_SOURCES = (
    'socialmedia',
    'marketing',
    'digitalmarketing',
    'socialmediamarketing',
    'Instagram',
)

DEFAULT_TEMPLATES = {
    PayloadFormat.LISTING: 'https://www.reddit.com/r/{name}/top.json',
    PayloadFormat.FEED: 'https://www.reddit.com/r/{name}/top/.rss',
}

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / 'config' / 'sources.json'


@dataclass
class SourceRegistry:
    """
    Registry of configured sources.

    Names that are not configured explicitly resolve against the
    template of the default payload format.
    """

    _sources: Dict[str, SourceConfig] = field(default_factory=dict)
    _templates: Dict[PayloadFormat, str] = field(default_factory=lambda: dict(DEFAULT_TEMPLATES))
    default_format: PayloadFormat = PayloadFormat.LISTING
    default_names: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCES))
    default_limit: int = 5
    origin: str = 'reddit'

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        default_format: Optional[PayloadFormat] = None
    ) -> 'SourceRegistry':
        """Load registry from sources.json. A missing file yields defaults."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH
        config_path = Path(config_path)

        config = {}
        if config_path.exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)

        defaults = config.get('defaults', {})
        fmt = default_format or PayloadFormat(defaults.get('payload_format', 'listing'))
        origin = defaults.get('origin', 'reddit')

        templates = dict(DEFAULT_TEMPLATES)
        for fmt_name, template in config.get('templates', {}).items():
            templates[PayloadFormat(fmt_name)] = template

        sources = {}
        for source_data in config.get('sources', []):
            source_fmt = PayloadFormat(source_data.get('payload_format', fmt.value))
            source = SourceConfig(
                name=source_data['name'],
                url=source_data.get('url', templates[source_fmt]),
                payload_format=source_fmt,
                origin=source_data.get('origin', origin),
                enabled=source_data.get('enabled', True),
            )
            sources[source.name] = source

        return cls(
            _sources=sources,
            _templates=templates,
            default_format=fmt,
            default_names=list(defaults.get('sources', DEFAULT_SOURCES)),
            default_limit=int(defaults.get('limit', 5)),
            origin=origin,
        )

    def resolve(self, name: str) -> SourceConfig:
        """Get the configuration for a source name, configured or not."""
        name = name.strip()
        source = self.get(name)
        if source is not None:
            return source
        return SourceConfig(
            name=name,
            url=self._templates[self.default_format],
            payload_format=self.default_format,
            origin=self.origin,
        )

    def get(self, name: str) -> Optional[SourceConfig]:
        """Get an explicitly configured source."""
        return self._sources.get(name)

    def enabled_sources(self) -> Iterator[SourceConfig]:
        for source in self._sources.values():
            if source.enabled:
                yield source

    @property
    def total_count(self) -> int:
        return len(self._sources)

    def stats(self) -> dict:
        return {
            'configured': self.total_count,
            'enabled': sum(1 for _ in self.enabled_sources()),
            'default_format': self.default_format.value,
            'default_sources': list(self.default_names),
            'default_limit': self.default_limit,
        }
