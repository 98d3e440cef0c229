# price_analyzer/agents/used_market_agent.py

"""Agent asking the model for the lowest second-hand listing price."""

import urllib.parse

from price_analyzer.agents.base_agent import BasePriceAgent
from price_analyzer.config.settings import Settings


def build_search_url(product_name: str) -> str:
    """Marketplace search URL for *product_name*, sorted by price.

    Only embedded in the prompt for display and audit; nothing here
    fetches it.
    """
    return Settings.USED_MARKET_SEARCH_URL.format(
        query=urllib.parse.quote(product_name, safe="")
    )


class UsedMarketAgent(BasePriceAgent):
    """Used-item price search on the Avito marketplace."""

    kind = "used"

    def system_prompt(self, product_name: str) -> str:
        search_url = build_search_url(product_name)
        return f"""ROLE: Specialist in finding used goods on Avito.ru.

TASK: Find the minimum price of a USED "{product_name}" on Avito.ru.

ALGORITHM:
1. Search ONLY avito.ru across all of Russia: {search_url}
2. Sort by price, lowest first.
3. Consider ONLY used items (not new).
4. Pick the best offers.

STRICT RESPONSE FORMAT (JSON ONLY):
{{
  "success": true,
  "productName": "{product_name}",
  "searchUrl": "{search_url}",
  "minPrice": 45000,
  "currency": "RUB",
  "bestOffer": {{
    "title": "Listing title",
    "price": 45000,
    "location": "Moscow",
    "url": "https://www.avito.ru/moskva/...",
    "seller": "private seller",
    "condition": "used",
    "description": "Short description"
  }},
  "allOffers": [
    {{"title": "Listing 1", "price": 45000, "location": "Moscow", "url": "https://www.avito.ru/link1", "condition": "used"}},
    {{"title": "Listing 2", "price": 47000, "location": "Saint Petersburg", "url": "https://www.avito.ru/link2", "condition": "used"}}
  ],
  "searchSummary": {{
    "totalOffersFound": 25,
    "priceRange": "45000 - 65000 RUB",
    "averagePrice": 52000,
    "topCities": ["Moscow", "Saint Petersburg", "Yekaterinburg"]
  }}
}}

IF NOTHING IS FOUND:
{{
  "success": false,
  "productName": "{product_name}",
  "message": "Used item not found on Avito",
  "searchUrl": "{search_url}",
  "searchDetails": "Details of the failed search"
}}"""

    def user_prompt(self, product_name: str) -> str:
        return (
            f'Find the minimum price of a used "{product_name}" on '
            "Avito.ru across all of Russia."
        )
