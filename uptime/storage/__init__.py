"""Storage: SQLite endpoint registry + sample store."""

from .endpoints import EndpointRegistry
from .samples import SampleStore
