import hashlib
from typing import Optional
from src.config import settings
from src.config.loader import FareSettings


def normalize_zone(zone: str) -> str:
    return zone.strip().casefold()


class PricingService:
    def __init__(self, fares: Optional[FareSettings] = None):
        self.fares = fares or settings.fares
        # Известные маршруты симметричны: ключ: отсортированная пара зон
        self._route_fares = {}
        for route, fare in self.fares.ZONE_FARES.items():
            first, _, second = route.partition("|")
            self._route_fares[self._route_key(first, second)] = fare

    @staticmethod
    def _route_key(from_zone: str, to_zone: str) -> tuple:
        return tuple(sorted((normalize_zone(from_zone), normalize_zone(to_zone))))

    def distance_band(self, from_zone: str, to_zone: str) -> int:
        """
        Условная дальность маршрута от 1 до DISTANCE_BANDS.
        Выводится из хеша пары зон, поэтому не зависит от процесса и направления.
        """
        key = "|".join(self._route_key(from_zone, to_zone))
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return int(digest, 16) % self.fares.DISTANCE_BANDS + 1

    def quote(self, from_zone: str, to_zone: str) -> float:
        """
        Расчет стоимости поездки между зонами.

        Логика:
        - Известный маршрут: фиксированная цена из ZONE_FARES
        - Поездка внутри одной зоны: MIN_FARE
        - Иначе: BASE_FARE + дальность * FARE_PER_BAND
        """
        key = self._route_key(from_zone, to_zone)
        if key in self._route_fares:
            price = self._route_fares[key]
        elif key[0] == key[1]:
            price = self.fares.MIN_FARE
        else:
            price = self.fares.BASE_FARE + self.distance_band(from_zone, to_zone) * self.fares.FARE_PER_BAND

        return round(max(price, 0.0), 2)
