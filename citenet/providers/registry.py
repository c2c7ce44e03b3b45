# citenet/providers/registry.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Type, Union

from citenet.config.settings import ProviderName, settings
from citenet.providers.base import ArticleNormalizer, SourceConnector
from citenet.providers.crossref import CrossrefConnector, CrossrefNormalizer
from citenet.providers.openalex import OpenAlexConnector, OpenAlexNormalizer
from citenet.providers.opencitations import OpenCitationsConnector, OpenCitationsNormalizer
from citenet.providers.semantic_scholar import SemanticScholarConnector, SemanticScholarNormalizer


@dataclass
class Provider:
    """A connector and the normalizer for its responses."""

    name: ProviderName
    connector: SourceConnector
    normalizer: ArticleNormalizer

    @property
    def supports_citations(self) -> bool:
        return self.connector.supports_citations


_REGISTRY: Dict[ProviderName, tuple[Type[SourceConnector], Type[ArticleNormalizer]]] = {
    ProviderName.OPENALEX: (OpenAlexConnector, OpenAlexNormalizer),
    ProviderName.SEMANTIC_SCHOLAR: (SemanticScholarConnector, SemanticScholarNormalizer),
    ProviderName.CROSSREF: (CrossrefConnector, CrossrefNormalizer),
    ProviderName.OPENCITATIONS: (OpenCitationsConnector, OpenCitationsNormalizer),
}


def get_provider(name: Optional[Union[str, ProviderName]] = None) -> Provider:
    """
    Build the provider for `name` (defaults to settings.default_provider).
    """
    provider_name = ProviderName(name) if name is not None else settings.default_provider
    connector_cls, normalizer_cls = _REGISTRY[provider_name]
    return Provider(name=provider_name, connector=connector_cls(), normalizer=normalizer_cls())
