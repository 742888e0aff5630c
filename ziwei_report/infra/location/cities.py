"""Gazetteer minimal des principales villes chinoises (longitude/latitude).

Sert à résoudre le lieu de naissance saisi par nom (chinois ou pinyin) avant le calcul du temps
solaire vrai.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class City:
    name: str
    pinyin: str
    province: str
    longitude: float
    latitude: float


CITIES: tuple[City, ...] = (
    City("北京", "beijing", "北京", 116.4074, 39.9042),
    City("上海", "shanghai", "上海", 121.4737, 31.2304),
    City("天津", "tianjin", "天津", 117.1901, 39.1255),
    City("重庆", "chongqing", "重庆", 106.5516, 29.5630),
    City("广州", "guangzhou", "广东", 113.2644, 23.1291),
    City("深圳", "shenzhen", "广东", 114.0579, 22.5431),
    City("南京", "nanjing", "江苏", 118.7969, 32.0603),
    City("苏州", "suzhou", "江苏", 120.5853, 31.2994),
    City("杭州", "hangzhou", "浙江", 120.1551, 30.2741),
    City("青岛", "qingdao", "山东", 120.3826, 36.0671),
    City("成都", "chengdu", "四川", 104.0657, 30.6595),
    City("武汉", "wuhan", "湖北", 114.3052, 30.5931),
    City("长沙", "changsha", "湖南", 112.9388, 28.2282),
    City("郑州", "zhengzhou", "河南", 113.6254, 34.7466),
    City("厦门", "xiamen", "福建", 118.0894, 24.4798),
    City("西安", "xian", "陕西", 108.9402, 34.3416),
    City("沈阳", "shenyang", "辽宁", 123.4291, 41.7968),
    City("大连", "dalian", "辽宁", 121.6147, 38.9140),
    City("哈尔滨", "haerbin", "黑龙江", 126.6424, 45.7569),
    City("昆明", "kunming", "云南", 102.8329, 24.8801),
    City("乌鲁木齐", "wulumuqi", "新疆", 87.6177, 43.7928),
    City("拉萨", "lasa", "西藏", 91.1322, 29.6600),
    City("香港", "hongkong", "香港", 114.1694, 22.3193),
    City("台北", "taibei", "台湾", 121.5654, 25.0330),
)


class CityGazetteer:
    """Recherche de villes par nom exact (chinois ou pinyin) ou par fragment."""

    def __init__(self, cities: tuple[City, ...] = CITIES):
        self._cities = cities
        self._index = {c.name: c for c in cities} | {c.pinyin: c for c in cities}

    def get_city_by_name(self, name: str) -> City | None:
        """Retourne la ville de nom `name`, ou None si inconnue."""
        key = name.strip()
        return self._index.get(key) or self._index.get(key.lower().replace(" ", ""))

    def search(self, query: str, limit: int = 10) -> list[City]:
        """Villes dont le nom, le pinyin ou la province contient `query`."""
        q = query.strip().lower()
        if not q:
            return list(self._cities[:limit])
        hits = [
            c
            for c in self._cities
            if q in c.name.lower() or q in c.pinyin or q in c.province.lower()
        ]
        return hits[:limit]
