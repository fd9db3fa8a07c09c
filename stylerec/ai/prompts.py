"""Centralized prompt templates for LLM interactions."""

from pydantic import BaseModel

STYLIST_SYSTEM_PROMPT = (
    "You are a personal shopping assistant and fashion stylist. Recommend real "
    "products that match the user's style based on their saved items. Use realistic "
    "product names, brands, approximate prices, and include plausible image URLs."
)


class StyleRecommendationPrompt(BaseModel):
    """Prompt schema for generating recommendations from a style summary."""

    item_lines: list[str]
    min_items: int = 5
    max_items: int = 8

    def to_prompt(self) -> str:
        """Convert to prompt text."""
        items_list = "\n".join(self.item_lines)
        return f"""Based on these saved fashion/shopping items:
{items_list}

Suggest {self.min_items}-{self.max_items} similar products they might like. Focus on similar styles, brands, and price ranges.
Return ONLY a JSON object with this exact structure:
{{
  "recommendations": [
    {{
      "url": "https://www.brand-site.com/product-page",
      "title": "Product Name",
      "brand": "Brand Name",
      "price": "199",
      "image_url": "https://www.brand-site.com/product-image.jpg",
      "reason": "Brief explanation why this matches their style"
    }}
  ]
}}

Make sure to include realistic product URLs and image URLs for each product."""


# Response schemas for structured output
RECOMMENDATIONS_SCHEMA = {
    "type": "object",
    "properties": {
        "recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "url": {"type": "string"},
                    "title": {"type": "string"},
                    "brand": {"type": "string"},
                    "price": {"type": "string"},
                    "image_url": {"type": "string"},
                    "reason": {"type": "string"},
                },
                "required": ["url", "title"],
            },
        },
    },
    "required": ["recommendations"],
}
