"""Ask the language model for products matching the user's style."""

import logging
from typing import Sequence

from stylerec.ai.llm_service import LLMResponseError, LLMServiceError
from stylerec.ai.prompts import RECOMMENDATIONS_SCHEMA, STYLIST_SYSTEM_PROMPT, StyleRecommendationPrompt
from stylerec.recommend.errors import CandidateSourceFatalFailure, CandidateSourceTransientFailure
from stylerec.recommend.sources.base import CandidateSource
from stylerec.recommend.types import SOURCE_GENERATIVE, CandidateProduct, SavedItem, StyleProfile

logger = logging.getLogger(__name__)


class GenerativeSource(CandidateSource):
    """Candidates from ``generate(prompt) -> {"recommendations": [...]}``."""

    name = SOURCE_GENERATIVE

    def __init__(self, llm):
        self.llm = llm

    async def fetch(
        self,
        profile: StyleProfile,
        saved_items: Sequence[SavedItem],
        user_id: str,
    ) -> list[CandidateProduct]:
        prompt = StyleRecommendationPrompt(item_lines=profile.item_lines)

        try:
            response = await self.llm.generate(
                STYLIST_SYSTEM_PROMPT,
                prompt.to_prompt(),
                RECOMMENDATIONS_SCHEMA,
            )
        except LLMResponseError as e:
            raise CandidateSourceTransientFailure(self.name, f"malformed model output: {e}") from e
        except LLMServiceError as e:
            if e.transient:
                raise CandidateSourceTransientFailure(self.name, str(e)) from e
            raise CandidateSourceFatalFailure(self.name, str(e)) from e

        recommendations = response.get("recommendations")
        if not isinstance(recommendations, list):
            raise CandidateSourceTransientFailure(self.name, "model output has no recommendations array")

        candidates = [
            CandidateProduct(source=self.name, data=entry)
            for entry in recommendations
            if isinstance(entry, dict)
        ]
        logger.debug(f"Model suggested {len(candidates)} products")
        return candidates
