"""
Fetch outcome classification.

One outcome per cycle: the export either succeeded (possibly with nothing
new), was rejected for a bad key, or failed for some other reason. All
non-auth failures collapse into ExportFailure; the fixed sync interval is
the only retry policy.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from readwise_sync.readwise.client import ReadwiseAuthError, ReadwiseError


@dataclass(frozen=True)
class ExportSuccess:
    records: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class ExportAuthFailure:
    pass


@dataclass(frozen=True)
class ExportFailure:
    message: str


SyncOutcome = Union[ExportSuccess, ExportAuthFailure, ExportFailure]


async def fetch_outcome(client, api_key: str, since: Optional[datetime]) -> SyncOutcome:
    """
    Fetch changed records since `since` and classify the result.

    Args:
        client: ReadwiseClient (or AsyncMock in tests).
        api_key: Readwise access token.
        since: Cursor timestamp, or None for the full history.
    """
    try:
        records = await client.fetch_exports(api_key, since)
    except ReadwiseAuthError:
        return ExportAuthFailure()
    except ReadwiseError as exc:
        return ExportFailure(str(exc))
    return ExportSuccess(list(records or []))
