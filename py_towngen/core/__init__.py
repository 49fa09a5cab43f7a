"""
Core town generation functionality.
"""

from .params import TownParams
from .rng import SeededRNG, make_rng, rng_for, stable_id
from .models import (
    Block, Building, BuildingKind, Decor, District, Parcel, Polyline,
    RoadEdge, RoadGraph, RoadKind, RoadNode, Town,
)
from .town import generate_town

__all__ = ['TownParams', 'SeededRNG', 'make_rng', 'rng_for', 'stable_id',
           'Block', 'Building', 'BuildingKind', 'Decor', 'District', 'Parcel',
           'Polyline', 'RoadEdge', 'RoadGraph', 'RoadKind', 'RoadNode', 'Town',
           'generate_town']
