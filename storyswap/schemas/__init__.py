"""StorySwap schema definitions.

All Pydantic v2 models used by the relay, the consumer and the CLI.
"""

from storyswap.schemas.config import (
    ClientConfig,
    HarmCategory,
    ModelConfig,
    SafetySetting,
    SafetyThreshold,
    ServerConfig,
    Settings,
)
from storyswap.schemas.streaming import (
    DONE_MARKER,
    EventKind,
    RecordSplitter,
    StreamEvent,
    parse_record,
)
from storyswap.schemas.transform import (
    ErrorResponse,
    ReplacementPair,
    TransformRequest,
    TransformResponse,
)

__all__ = [
    "DONE_MARKER",
    "ClientConfig",
    "ErrorResponse",
    "EventKind",
    "HarmCategory",
    "ModelConfig",
    "RecordSplitter",
    "ReplacementPair",
    "SafetySetting",
    "SafetyThreshold",
    "ServerConfig",
    "Settings",
    "StreamEvent",
    "TransformRequest",
    "TransformResponse",
    "parse_record",
]
