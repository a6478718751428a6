import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from gateway.config import Settings
from gateway.jobs import JobQueues
from gateway.services.settlement import OutcomeDecider, RandomOutcomeDecider


@dataclass
class WorkerContext:
    """Everything a job handler needs; handlers keep no other state."""

    session_factory: async_sessionmaker
    queues: JobQueues
    settings: Settings
    http_client: httpx.AsyncClient
    outcome_decider: OutcomeDecider = field(default_factory=RandomOutcomeDecider)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    rng: random.Random = field(default_factory=random.Random)
