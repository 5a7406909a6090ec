"""Services layer for AdvanceWeekly."""

from advanceweekly.services.consolidation import ConsolidationService, consolidation_service
from advanceweekly.services.llm import LLMGateway, ModelParams, llm_gateway
from advanceweekly.services.preferences import PreferenceService, preference_service

__all__ = [
    "ConsolidationService",
    "consolidation_service",
    "LLMGateway",
    "ModelParams",
    "llm_gateway",
    "PreferenceService",
    "preference_service",
]
