"""
Anti-snipe auto-extension.

A bid that lands inside the last ``threshold_minutes`` of an auction pushes
the end time out by ``minutes``, at most ``max_extensions`` times.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings


@dataclass(frozen=True)
class AutoExtendConfig:
    enabled: bool = True
    minutes: int = 5
    threshold_minutes: int = 2
    max_extensions: int = 3

    @classmethod
    def for_auction(cls, auction) -> "AutoExtendConfig":
        """
        Resolve the per-auction knobs once, falling back to
        AUCTION_AUTO_EXTEND_DEFAULTS for anything the row leaves NULL.
        """
        defaults = getattr(settings, "AUCTION_AUTO_EXTEND_DEFAULTS", {})

        def pick(value, key, fallback):
            return value if value is not None else defaults.get(key, fallback)

        return cls(
            enabled=bool(pick(auction.auto_extend_enabled, "enabled", cls.enabled)),
            minutes=int(pick(auction.auto_extend_minutes, "minutes", cls.minutes)),
            threshold_minutes=int(
                pick(auction.auto_extend_threshold, "threshold_minutes", cls.threshold_minutes)
            ),
            max_extensions=int(pick(auction.max_extensions, "max_extensions", cls.max_extensions)),
        )


@dataclass(frozen=True)
class ExtensionDecision:
    end_time: datetime
    extension_count: int
    extended: bool


def evaluate_extension(
    now: datetime,
    end_time: datetime,
    extension_count: int,
    config: AutoExtendConfig,
) -> ExtensionDecision:
    remaining = end_time - now
    window = timedelta(minutes=config.threshold_minutes)

    if (
        config.enabled
        and timedelta(0) < remaining <= window
        and extension_count < config.max_extensions
    ):
        return ExtensionDecision(
            end_time=end_time + timedelta(minutes=config.minutes),
            extension_count=extension_count + 1,
            extended=True,
        )

    return ExtensionDecision(end_time=end_time, extension_count=extension_count, extended=False)
