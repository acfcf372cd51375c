"""Cosmetic models for the customization system"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from datetime import datetime
from typing import Optional, List, Dict

from pet_progression.models.achievement import RarityTier


class CosmeticCategory(str, Enum):
    """Cosmetic slot; each item belongs to exactly one"""
    HAT = "hat"
    ACCESSORY = "accessory"
    COLOR = "color"
    BACKGROUND = "background"
    THEME = "theme"

    @property
    def layer_index(self) -> int:
        return LAYER_ORDER[self]


# z-order for rendering, lower renders behind higher
LAYER_ORDER = {
    CosmeticCategory.BACKGROUND: 0,
    CosmeticCategory.COLOR: 1,
    CosmeticCategory.ACCESSORY: 2,
    CosmeticCategory.HAT: 3,
    CosmeticCategory.THEME: 4,
}


class PixelData(BaseModel):
    """Single pixel of an 8-bit cosmetic"""
    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    color: str


class CosmeticRenderData(BaseModel):
    """Render payload handed to the renderer as-is"""
    model_config = ConfigDict(frozen=True)

    layer_index: int = Field(ge=0)
    offset_x: int = 0
    offset_y: int = 0
    pixels: Optional[List[PixelData]] = None
    color_override: Optional[str] = None  # colour token or theme override


class Cosmetic(BaseModel):
    """Cosmetic catalog entry, stamped with unlocked_at once owned"""
    id: str
    name: str
    category: CosmeticCategory
    rarity: RarityTier
    preview_url: str
    render_data: CosmeticRenderData
    unlock_condition: str  # achievement id, informational only
    unlocked_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_layer_matches_category(self) -> "Cosmetic":
        if self.render_data.layer_index != self.category.layer_index:
            raise ValueError(
                f"{self.category.value} cosmetics render on layer {self.category.layer_index}"
            )
        return self


class CosmeticLayer(BaseModel):
    """One entry of the ordered render list"""
    cosmetic_id: str
    category: CosmeticCategory
    render_data: CosmeticRenderData


class CosmeticInventoryState(BaseModel):
    """Owned cosmetics plus at most one equipped id per category"""
    items: List[Cosmetic] = Field(default_factory=list)
    equipped: Dict[CosmeticCategory, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_unique_items(self) -> "CosmeticInventoryState":
        ids = [item.id for item in self.items]
        if len(ids) != len(set(ids)):
            raise ValueError("inventory contains duplicate cosmetic ids")
        return self


class CosmeticStatistics(BaseModel):
    """Aggregate counts over the owned collection"""
    total_owned: int
    total_available: int
    by_category: Dict[CosmeticCategory, int]
    by_rarity: Dict[RarityTier, int]
    rarest_owned: Optional[Cosmetic] = None


class CosmeticStorageData(BaseModel):
    """Schema for the persisted cosmetics blob"""
    inventory: CosmeticInventoryState
    last_updated: datetime
