"""Deal pipeline enums."""

from enum import Enum


class DealStage(str, Enum):
    """Pipeline stages, in order. WON/LOST are terminal."""

    LEAD = "lead"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"


CLOSED_DEAL_STAGES = {DealStage.WON, DealStage.LOST}


class DealPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
