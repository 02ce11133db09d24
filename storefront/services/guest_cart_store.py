# storefront/services/guest_cart_store.py
import json

import pydantic
import redis

from storefront.domain.schemas import GuestCartLine
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL, GUEST_CART_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class GuestCartStore:
    """
    Koszyk goscia poza trwala baza - lista {product_id, variant_id, quantity}
    zapisana jako JSON pod kluczem tokenu klienta, z TTL.
    Przy logowaniu oddawana w calosci do merge i czyszczona.
    """

    def __init__(self, client: redis.Redis | None = None, ttl: int = GUEST_CART_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def _key(token: str) -> str:
        return f"guest_cart:{token}"

    @redis_retry()
    def load(self, token: str) -> list[dict]:
        raw = self.redis.get(self._key(token))
        if not raw:
            return []
        try:
            lines = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Guest cart {token} holds malformed data, ignoring it")
            return []
        if not isinstance(lines, list):
            logger.warning(f"Guest cart {token} is not a list, ignoring it")
            return []

        valid = []
        for entry in lines:
            try:
                valid.append(GuestCartLine.model_validate(entry).model_dump())
            except pydantic.ValidationError:
                logger.warning(f"Guest cart {token}: dropping invalid entry {entry!r}")
        return valid

    @redis_retry()
    def save(self, token: str, lines: list[dict]) -> None:
        self.redis.set(self._key(token), json.dumps(lines), ex=self.ttl)

    def add(self, token: str, product_id: int, variant_id: int | None, quantity: int) -> list[dict]:
        lines = self.load(token)
        for line in lines:
            if line.get("product_id") == product_id and line.get("variant_id") == variant_id:
                line["quantity"] = int(line.get("quantity", 0)) + quantity
                break
        else:
            lines.append({"product_id": product_id, "variant_id": variant_id, "quantity": quantity})

        self.save(token, lines)
        logger.info(f"Guest cart {token}: product {product_id} (variant {variant_id}) +{quantity}")
        return lines

    @redis_retry()
    def clear(self, token: str) -> None:
        self.redis.delete(self._key(token))
        logger.info(f"Guest cart {token} cleared")
