# price_analyzer/agents/competitor_agent.py

"""Agent asking the model for the lowest new-item price at retailers."""

from price_analyzer.agents.base_agent import BasePriceAgent
from price_analyzer.config.settings import Settings
from price_analyzer.services.model_gateway import ModelGateway

PRODUCT_PLACEHOLDER = "{PRODUCT_NAME}"

_DEFAULT_TEMPLATE = """ROLE: Specialist in finding prices of goods in Russian online stores.

TASK: Find the REAL minimum price of the product "{PRODUCT_NAME}" at Russian competitors.

SEARCH ALGORITHM:
1. Use current information about Russian online stores.
2. Check the main retailers: {SITES}.
3. Collect REAL prices with CURRENT data.
4. Choose the MINIMUM price among the offers found.

STRICT RESPONSE FORMAT (JSON ONLY):
{
  "success": true,
  "productName": "{PRODUCT_NAME}",
  "minPrice": 89990,
  "currency": "RUB",
  "bestOffer": {
    "siteName": "Wildberries",
    "price": 89990,
    "productUrl": "https://www.wildberries.ru/catalog/12345/detail.aspx",
    "productTitle": "Exact product title on the site",
    "availability": "in stock",
    "deliveryInfo": "delivery tomorrow"
  },
  "allOffers": [
    {"siteName": "Wildberries", "price": 89990, "productUrl": "https://www.wildberries.ru/catalog/12345/detail.aspx", "availability": "in stock"},
    {"siteName": "Ozon", "price": 92000, "productUrl": "https://www.ozon.ru/product/123456", "availability": "in stock"}
  ],
  "searchSummary": {
    "totalSitesChecked": 7,
    "sitesWithProduct": 5,
    "priceRange": "89990 - 95000 RUB",
    "averagePrice": 91995
  }
}

IF THE PRODUCT IS NOT FOUND:
{
  "success": false,
  "productName": "{PRODUCT_NAME}",
  "message": "Product not found at competitors or unavailable",
  "searchDetails": "What was tried"
}

IMPORTANT:
- Use ONLY current price information.
- Do NOT invent prices or links.
- If you cannot find real prices, return success: false.
- All URLs must be REAL."""


class CompetitorPriceAgent(BasePriceAgent):
    """New-item price search across the major retailers.

    A custom system prompt may replace the default; it should contain
    ``{PRODUCT_NAME}`` where the product name goes.
    """

    kind = "competitor"

    def __init__(
        self,
        gateway: ModelGateway,
        model: str | None = None,
    ) -> None:
        super().__init__(gateway, model)
        self.custom_prompt: str | None = None

    def default_template(self) -> str:
        return _DEFAULT_TEMPLATE.replace(
            "{SITES}", ", ".join(Settings.COMPETITOR_SITES)
        )

    def system_prompt(self, product_name: str) -> str:
        template = self.custom_prompt or self.default_template()
        return template.replace(PRODUCT_PLACEHOLDER, product_name)

    def user_prompt(self, product_name: str) -> str:
        return (
            f'Find the minimum price of "{product_name}" at Russian '
            "competitors. Use current information."
        )

    def set_custom_prompt(self, template: str) -> None:
        """Use *template* instead of the default system prompt."""
        template = template.strip()
        if not template:
            msg = "Custom prompt is empty"
            raise ValueError(msg)
        if PRODUCT_PLACEHOLDER not in template:
            self.logger.warning(
                "Custom prompt has no %s placeholder; the product "
                "name will only appear in the user message",
                PRODUCT_PLACEHOLDER,
            )
        self.custom_prompt = template
        self.logger.info("Custom competitor prompt installed")

    def reset_prompt(self) -> None:
        """Go back to the built-in system prompt."""
        self.custom_prompt = None
        self.logger.info("Competitor prompt reset to default")
