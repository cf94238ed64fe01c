"""sajilo-client - async SajiloHire API client with a polling resource cache."""

from sajilo_client.api import HiringApi
from sajilo_client.cache import ResourceCache
from sajilo_client.chat import ChatInitializer, ChatInitState, ChatSession
from sajilo_client.client import ApiStatus, SajiloClient
from sajilo_client.config import Settings, get_settings

# Duration parsing
from sajilo_client.duration import parse_duration, parse_max_age
from sajilo_client.enrichment import EnrichmentTracker
from sajilo_client.errors import (
    ApiError,
    DecodeError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from sajilo_client.hiring import HiringMutations, HiringQueries
from sajilo_client.keys import define_keys, matches, resource_key, serialize_key
from sajilo_client.logging import configure_logging
from sajilo_client.mutations import Mutation, MutationDispatcher, MutationSet, mutation
from sajilo_client.polling import PollingController, every, while_status
from sajilo_client.resources import ResourceSet, resource
from sajilo_client.retry import RetryPolicy
from sajilo_client.transport import RequestClient

# Core types
from sajilo_client.types import (
    CacheEntry,
    CacheEvent,
    Duration,
    ResourceKey,
    StalenessPolicy,
    Transition,
)

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ApiStatus",
    "CacheEntry",
    "CacheEvent",
    "ChatInitState",
    "ChatInitializer",
    "ChatSession",
    "DecodeError",
    "Duration",
    "EnrichmentTracker",
    "HiringApi",
    "HiringMutations",
    "HiringQueries",
    "Mutation",
    "MutationDispatcher",
    "MutationSet",
    "NetworkError",
    "NotFoundError",
    "PollingController",
    "RequestClient",
    "ResourceCache",
    "ResourceKey",
    "ResourceSet",
    "RetryPolicy",
    "SajiloClient",
    "ServerError",
    "Settings",
    "StalenessPolicy",
    "Transition",
    "ValidationError",
    "configure_logging",
    "define_keys",
    "every",
    "get_settings",
    "matches",
    "mutation",
    "parse_duration",
    "parse_max_age",
    "resource",
    "resource_key",
    "serialize_key",
    "while_status",
]
