from manualgrab.constants import MODERN_ERA_START
from manualgrab.sources.legacy import LegacyIndex, fetch_alphabetical_index
from manualgrab.sources.modern import ModernTree, fetch_tree_and_cover
from manualgrab.sources.wiring import WiringToc, fetch_table_of_contents


def select_source(model_year) -> str:
    """Return which table-of-contents shape a manual of *model_year* uses."""
    return "modern" if int(model_year) >= MODERN_ERA_START else "legacy"


__all__ = [
    "LegacyIndex",
    "ModernTree",
    "WiringToc",
    "fetch_alphabetical_index",
    "fetch_table_of_contents",
    "fetch_tree_and_cover",
    "select_source",
]
