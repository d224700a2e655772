"""Repository for the PromoCode aggregate."""

from checkout.domain import checkout
from checkout.promo.promo_code import PromoCode


@checkout.repository(part_of=PromoCode)
class PromoCodeRepository:
    def find_by_code(self, code: str) -> PromoCode | None:
        """Look up a code case-insensitively. Codes are stored upper-case."""
        promos = self._dao.query.filter(code=PromoCode.normalize(code)).all().items
        return self.get(promos[0].id) if promos else None
