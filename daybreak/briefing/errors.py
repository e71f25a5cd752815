"""
Briefing pipeline errors.

Each error maps to one way a briefing can fail and to the place it is
handled:
- ProviderUnavailable: caught by the aggregator, section degraded to empty
- GenerationTimeout / GenerationSchemaError: caught by the narrative
  generator, fallback narrative used
- ChannelSendFailure: recorded as a failed delivery
- NoChannelConfigured: recorded as a failed delivery before any work is done
- LedgerWriteConflict: treated as already delivered
"""


class BriefingError(Exception):
    """Base class for briefing pipeline errors."""


class ProviderUnavailable(BriefingError):
    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"Provider '{provider}' unavailable: {reason}")


class GenerationError(BriefingError):
    """The generative backend failed to produce usable content."""


class GenerationTimeout(GenerationError):
    pass


class GenerationSchemaError(GenerationError):
    pass


class ChannelSendFailure(BriefingError):
    def __init__(self, channel: str, reason: str):
        self.channel = channel
        self.reason = reason
        super().__init__(f"Sending via {channel} failed: {reason}")


class NoChannelConfigured(BriefingError):
    pass


class LedgerWriteConflict(BriefingError):
    def __init__(self, user_id: int, calendar_day):
        self.user_id = user_id
        self.calendar_day = calendar_day
        super().__init__(f"Briefing for user {user_id} on {calendar_day} already recorded as delivered")
