# storefront/services/product_client.py
from decimal import Decimal, InvalidOperation

import requests
from requests import RequestException

from storefront.domain.exceptions import ProductNotFoundError, CatalogUnavailableError
from storefront.utils.retry import http_retry
from storefront.utils.settings import PRODUCT_SERVICE_URL, PRODUCT_SERVICE_TIMEOUT
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


class ProductClient:
    """Read-only price oracle backed by the product service."""

    def __init__(self, base_url: str | None = None, timeout: int = PRODUCT_SERVICE_TIMEOUT):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        resp = requests.get(url, timeout=self.timeout)
        # 404 is an answer, not a transient failure
        if resp.status_code != 404:
            resp.raise_for_status()
        return resp

    def fetch_product(self, product_id: int) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        try:
            resp = self._get(url)
        except RequestException as e:
            logger.error(f"Product service unavailable for product {product_id}: {e}")
            raise CatalogUnavailableError("Product catalog is unavailable") from e

        if resp.status_code == 404:
            raise ProductNotFoundError(product_id)

        try:
            data = resp.json()
            return {
                "id": data["id"],
                "name": data["name"],
                "price": Decimal(str(data["price"])).quantize(CENT),
            }
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            logger.error(f"Product service sent a malformed body for product {product_id}: {e}")
            raise CatalogUnavailableError("Product catalog returned an invalid response") from e

    def get_unit_price(self, product_id: int) -> Decimal:
        return self.fetch_product(product_id)["price"]
