"""Record shapes passed between the source client, resolvers and the store.

Upstream payloads are parsed into these dataclasses once, at the client
boundary, with the defaulting rules applied there; nothing downstream
looks at raw XML or JSON.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

SOURCE_TAG = "KOPIS"
NO_CONTENT = "No contents"

# category code -> storage type tag
CATEGORY_TYPES = {"AAAA": "THEATER", "GGGA": "MUSICAL"}


def category_type(category: str) -> str:
    if category in CATEGORY_TYPES.values():
        return category
    return "THEATER" if category == "AAAA" else "MUSICAL"


@dataclass
class RawListItem:
    id: str
    title: str = ""
    genre: str = ""
    start_date: str = ""
    end_date: str = ""
    poster: str = ""
    venue: str = ""
    open_run: bool = False


@dataclass
class RelatedLink:
    name: str = ""
    url: str = ""


@dataclass
class RawDetail:
    id: str
    title: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    venue: Optional[str] = None
    cast: Optional[str] = None
    price: Optional[str] = None
    schedule: Optional[str] = None
    poster: Optional[str] = None
    genre: Optional[str] = None
    status: Optional[str] = None
    synopsis: Optional[str] = None
    relates: List[RelatedLink] = field(default_factory=list)


@dataclass
class Coordinates:
    latitude: float
    longitude: float


@dataclass
class EnrichedRecord:
    id: str
    source: str
    type: str
    title: str
    start_date: date
    end_date: date
    time_info: str
    place_name: str
    price: str
    poster_url: str
    genre: str
    status: str
    description: str = ""
    ticket_link: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class GeoDocument:
    """One document of a keyword-search geocoding response."""

    x: Optional[str] = None  # longitude
    y: Optional[str] = None  # latitude
    place_name: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GeoDocument":
        return cls(x=data.get("x"), y=data.get("y"), place_name=data.get("place_name"))

    def coordinates(self) -> Optional[Coordinates]:
        if not self.x or not self.y:
            return None
        try:
            return Coordinates(latitude=float(self.y), longitude=float(self.x))
        except ValueError:
            return None


@dataclass
class SearchItem:
    """One item of a content-search response; title/description already cleaned."""

    title: str = ""
    description: str = ""
    link: Optional[str] = None


@dataclass
class NewsSnippet:
    type: str
    source: str
    result: str
