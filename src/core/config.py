"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryConfig:
    """Paging and pacing settings for the selector and dispatcher."""

    read_server_base_url: str
    batch_size: int = 1000
    batch_delay_seconds: float = 1.0
    alert_text: str = "Breaking news!"


@dataclass(frozen=True)
class ScheduleConfig:
    """Cadence of the periodic orchestrator invocation."""

    run_every_seconds: float = 60.0
