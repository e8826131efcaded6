from .detail_parser import DetailExtraction, DetailParser, DetailParserConfig
from .document import load_document
from .listing_parser import ListingExtraction, ListingParser, ListingParserConfig

__all__ = [
    "DetailExtraction",
    "DetailParser",
    "DetailParserConfig",
    "ListingExtraction",
    "ListingParser",
    "ListingParserConfig",
    "load_document",
]
