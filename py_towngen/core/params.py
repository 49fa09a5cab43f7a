"""Town generation parameters."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _clamp(value, lo, hi):
    return max(lo, min(hi, value))


class TownParams(BaseModel):
    """
    Parameters that, together with the seed, fully determine a generated town.

    Instances are immutable. Field names are snake_case in Python; camelCase
    aliases (``townRadius``, ``bMin``...) are accepted when reading payloads.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    seed: str = Field(default="winack", description="Seed string for all randomness")
    town_radius: float = Field(default=420.0, gt=0, description="Town radius in world units")
    main_roads: int = Field(default=9, ge=0, description="Number of radial main spines")
    ring_roads: int = Field(default=2, ge=0, description="Number of concentric ring roads")
    density: float = Field(default=1.2, gt=0, description="Minor road and parcel density")
    b_min: float = Field(default=10.0, gt=0, description="Minimum building size")
    b_max: float = Field(default=26.0, gt=0, description="Maximum building size")
    road_width: float = Field(default=8.0, gt=0, description="Base road width")

    def clamped(self) -> "TownParams":
        """
        Return a copy with every value forced into its supported range.

        This is the only place parameters are sanitised; the generators assume
        b_min < b_max, town_radius > 0 and non-negative counts.
        """
        b_min = max(2.0, float(self.b_min))
        b_max = max(b_min + 1.0, float(self.b_max))
        return TownParams(
            seed=self.seed,
            town_radius=_clamp(float(self.town_radius), 60.0, 2000.0),
            main_roads=int(_clamp(self.main_roads, 0, 48)),
            ring_roads=int(_clamp(self.ring_roads, 0, 8)),
            density=_clamp(float(self.density), 0.1, 4.0),
            b_min=b_min,
            b_max=b_max,
            road_width=_clamp(float(self.road_width), 2.0, 40.0),
        )
