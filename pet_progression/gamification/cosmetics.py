"""
Cosmetic Inventory & Compositor

Manages what the pet can wear:
- Static cosmetic catalog (hats, accessories, colours, backgrounds, themes)
- Owned inventory, stamped with the unlock time
- One equipped item per category
- Ordered render layers for the renderer, with try-on preview
"""

from typing import Callable, Dict, List, Optional, Sequence, Tuple
from datetime import datetime
import logging

from pet_progression.exceptions import CosmeticNotFoundError
from pet_progression.models.achievement import RarityTier
from pet_progression.models.cosmetic import (
    Cosmetic,
    CosmeticCategory,
    CosmeticInventoryState,
    CosmeticLayer,
    CosmeticRenderData,
    CosmeticStatistics,
    CosmeticStorageData,
    LAYER_ORDER,
    PixelData,
)
from pet_progression.resilience.metrics import record_unlock
from pet_progression.storage.repository import COSMETICS_KEY, StateRepository
from pet_progression.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


def _pixels(color: str, coords: Sequence[Tuple[int, int]]) -> List[PixelData]:
    return [PixelData(x=x, y=y, color=color) for x, y in coords]


def _render(
    category: CosmeticCategory,
    offset_x: int = 0,
    offset_y: int = 0,
    pixels: Optional[List[PixelData]] = None,
    color_override: Optional[str] = None
) -> CosmeticRenderData:
    return CosmeticRenderData(
        layer_index=LAYER_ORDER[category],
        offset_x=offset_x,
        offset_y=offset_y,
        pixels=pixels,
        color_override=color_override
    )


# ============================================
# Cosmetic Catalog
# ============================================

COSMETIC_CATALOG: List[Cosmetic] = [
    # ========== HATS ==========
    Cosmetic(
        id="hat_crown",
        name="Royal Crown",
        category=CosmeticCategory.HAT,
        rarity=RarityTier.COMMON,
        preview_url="cosmetics/hat_crown.png",
        render_data=_render(
            CosmeticCategory.HAT,
            offset_y=-10,
            pixels=_pixels("#FFD700", [
                (4, 0), (5, 0), (6, 0), (3, 1), (7, 1),
                (3, 2), (4, 2), (5, 2), (6, 2), (7, 2),
            ])
        ),
        unlock_condition="steps_10000"
    ),
    Cosmetic(
        id="hat_headband",
        name="Fitness Headband",
        category=CosmeticCategory.HAT,
        rarity=RarityTier.COMMON,
        preview_url="cosmetics/hat_headband.png",
        render_data=_render(
            CosmeticCategory.HAT,
            offset_y=-5,
            pixels=_pixels("#FF6B6B", [(x, 0) for x in range(2, 9)])
        ),
        unlock_condition="streak_7"
    ),
    Cosmetic(
        id="hat_witch",
        name="Witch Hat",
        category=CosmeticCategory.HAT,
        rarity=RarityTier.RARE,
        preview_url="cosmetics/hat_witch.png",
        render_data=_render(
            CosmeticCategory.HAT,
            offset_y=-12,
            pixels=_pixels("#2D1B4E", [
                (5, 0),
                (4, 1), (5, 1), (6, 1),
                (3, 2), (4, 2), (5, 2), (6, 2), (7, 2),
                (2, 3), (3, 3), (4, 3), (5, 3), (6, 3), (7, 3), (8, 3),
            ])
        ),
        unlock_condition="special_halloween"
    ),
    Cosmetic(
        id="hat_champion",
        name="Champion Crown",
        category=CosmeticCategory.HAT,
        rarity=RarityTier.EPIC,
        preview_url="cosmetics/hat_champion.png",
        render_data=_render(
            CosmeticCategory.HAT,
            offset_y=-10,
            pixels=(
                _pixels("#9333EA", [(4, 0), (6, 0), (3, 1), (7, 1)])
                + _pixels("#FFD700", [(5, 0), (4, 1), (5, 1), (6, 1)])
                + _pixels("#9333EA", [(3, 2), (4, 2), (5, 2), (6, 2), (7, 2)])
            )
        ),
        unlock_condition="challenge_weekly_all"
    ),

    # ========== ACCESSORIES ==========
    Cosmetic(
        id="accessory_medal",
        name="Gold Medal",
        category=CosmeticCategory.ACCESSORY,
        rarity=RarityTier.RARE,
        preview_url="cosmetics/accessory_medal.png",
        render_data=_render(
            CosmeticCategory.ACCESSORY,
            offset_y=8,
            pixels=(
                _pixels("#4169E1", [(5, 0)])
                + _pixels("#FFD700", [(4, 1), (5, 1), (6, 1), (4, 2)])
                + _pixels("#FFA500", [(5, 2)])
                + _pixels("#FFD700", [(6, 2), (5, 3)])
            )
        ),
        unlock_condition="steps_15000"
    ),
    Cosmetic(
        id="accessory_cape",
        name="Hero Cape",
        category=CosmeticCategory.ACCESSORY,
        rarity=RarityTier.RARE,
        preview_url="cosmetics/accessory_cape.png",
        render_data=_render(
            CosmeticCategory.ACCESSORY,
            offset_x=-2,
            offset_y=2,
            pixels=(
                _pixels("#DC143C", [(0, 0), (0, 1), (1, 1), (0, 2), (1, 2), (0, 3), (1, 3), (2, 3)])
                + _pixels("#B22222", [(0, 4), (1, 4), (2, 4)])
            )
        ),
        unlock_condition="streak_14"
    ),
    Cosmetic(
        id="accessory_trophy",
        name="Mini Trophy",
        category=CosmeticCategory.ACCESSORY,
        rarity=RarityTier.RARE,
        preview_url="cosmetics/accessory_trophy.png",
        render_data=_render(
            CosmeticCategory.ACCESSORY,
            offset_x=8,
            offset_y=4,
            pixels=(
                _pixels("#FFD700", [(0, 0), (1, 0), (2, 0), (0, 1)])
                + _pixels("#FFA500", [(1, 1)])
                + _pixels("#FFD700", [(2, 1), (1, 2)])
                + _pixels("#8B4513", [(0, 3), (1, 3), (2, 3)])
            )
        ),
        unlock_condition="challenge_5"
    ),

    # ========== COLOURS ==========
    Cosmetic(
        id="color_gold",
        name="Golden Glow",
        category=CosmeticCategory.COLOR,
        rarity=RarityTier.EPIC,
        preview_url="cosmetics/color_gold.png",
        render_data=_render(CosmeticCategory.COLOR, color_override="#FFD700"),
        unlock_condition="steps_20000"
    ),
    Cosmetic(
        id="color_rainbow",
        name="Rainbow Spirit",
        category=CosmeticCategory.COLOR,
        rarity=RarityTier.EPIC,
        preview_url="cosmetics/color_rainbow.png",
        render_data=_render(CosmeticCategory.COLOR, color_override="rainbow"),
        unlock_condition="streak_60"
    ),

    # ========== BACKGROUNDS ==========
    Cosmetic(
        id="background_stars",
        name="Starry Night",
        category=CosmeticCategory.BACKGROUND,
        rarity=RarityTier.EPIC,
        preview_url="cosmetics/background_stars.png",
        render_data=_render(CosmeticCategory.BACKGROUND),
        unlock_condition="streak_30"
    ),
    Cosmetic(
        id="background_evolution",
        name="Evolution Aura",
        category=CosmeticCategory.BACKGROUND,
        rarity=RarityTier.RARE,
        preview_url="cosmetics/background_evolution.png",
        render_data=_render(CosmeticCategory.BACKGROUND),
        unlock_condition="explore_evolution"
    ),
    Cosmetic(
        id="background_haunted",
        name="Haunted Mist",
        category=CosmeticCategory.BACKGROUND,
        rarity=RarityTier.RARE,
        preview_url="cosmetics/background_haunted.png",
        render_data=_render(CosmeticCategory.BACKGROUND),
        unlock_condition="special_halloween"
    ),

    # ========== THEMES ==========
    Cosmetic(
        id="theme_golden",
        name="Golden Theme",
        category=CosmeticCategory.THEME,
        rarity=RarityTier.LEGENDARY,
        preview_url="cosmetics/theme_golden.png",
        render_data=_render(CosmeticCategory.THEME),
        unlock_condition="steps_30000"
    ),
    Cosmetic(
        id="theme_legendary",
        name="Legendary Theme",
        category=CosmeticCategory.THEME,
        rarity=RarityTier.LEGENDARY,
        preview_url="cosmetics/theme_legendary.png",
        render_data=_render(CosmeticCategory.THEME),
        unlock_condition="streak_90"
    ),
]


def get_catalog_cosmetic(cosmetic_id: str) -> Optional[Cosmetic]:
    """Look up a cosmetic in the static catalog"""
    for cosmetic in COSMETIC_CATALOG:
        if cosmetic.id == cosmetic_id:
            return cosmetic
    return None


def _layer_for(cosmetic: Cosmetic) -> CosmeticLayer:
    return CosmeticLayer(
        cosmetic_id=cosmetic.id,
        category=cosmetic.category,
        render_data=cosmetic.render_data
    )


class CosmeticInventory:
    """
    Owned cosmetics, equipment slots and render composition for one user.

    Example:
        inventory = CosmeticInventory(StateRepository(InMemoryStore()))
        await inventory.add_to_inventory_by_id("hat_crown")
        await inventory.equip_cosmetic("hat_crown")
        layers = await inventory.get_cosmetic_layers()
    """

    def __init__(
        self,
        repository: StateRepository,
        catalog: Optional[List[Cosmetic]] = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.repository = repository
        self.catalog: List[Cosmetic] = list(catalog if catalog is not None else COSMETIC_CATALOG)
        self.clock = clock
        self._catalog_index: Dict[str, Cosmetic] = {c.id: c for c in self.catalog}
        self._items: Dict[str, Cosmetic] = {}
        self._equipped: Dict[CosmeticCategory, str] = {}
        self._initialized = False

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> None:
        """
        Load persisted inventory once; invalid or missing state starts empty

        Raises:
            StoreReadError: If the store is unreadable; the inventory stays
                unloaded and reads again on the next call
        """
        if self._initialized:
            return

        data = await self.repository.load(COSMETICS_KEY, CosmeticStorageData)
        if data is not None:
            self._items = {item.id: item for item in data.inventory.items}
            for category, cosmetic_id in data.inventory.equipped.items():
                owned = self._items.get(cosmetic_id)
                if owned is None or owned.category != category:
                    logger.warning(
                        f"Dropping equipped {category.value} slot: {cosmetic_id} is not an owned "
                        f"{category.value} cosmetic"
                    )
                    continue
                self._equipped[category] = cosmetic_id

        self._initialized = True
        logger.info(f"Cosmetic inventory loaded: {len(self._items)} owned, {len(self._equipped)} equipped")

    async def reset(self) -> None:
        """Empty the inventory and all equipment slots"""
        self._items.clear()
        self._equipped.clear()
        self._initialized = True
        await self.repository.remove(COSMETICS_KEY)
        logger.info("Cosmetic inventory reset")

    async def reload(self) -> None:
        """Drop in-memory state and read it back from the store"""
        self._items.clear()
        self._equipped.clear()
        self._initialized = False
        await self.initialize()

    async def _persist(self) -> bool:
        data = CosmeticStorageData(
            inventory=CosmeticInventoryState(
                items=list(self._items.values()),
                equipped=dict(self._equipped)
            ),
            last_updated=self.clock()
        )
        return await self.repository.save(COSMETICS_KEY, data)

    # ============================================
    # Inventory
    # ============================================

    async def add_to_inventory(self, cosmetic: Cosmetic) -> bool:
        """
        Add a cosmetic, stamped with the current time

        Returns:
            True if newly added, False if it was already owned
        """
        await self.initialize()

        if cosmetic.id in self._items:
            logger.debug(f"Cosmetic {cosmetic.id} already in inventory")
            return False

        self._items[cosmetic.id] = cosmetic.model_copy(update={"unlocked_at": self.clock()})
        record_unlock("cosmetic")
        await self._persist()
        logger.info(f"Added cosmetic {cosmetic.id} to inventory")
        return True

    async def add_to_inventory_by_id(self, cosmetic_id: str) -> bool:
        """
        Add a catalog cosmetic by id

        Raises:
            CosmeticNotFoundError: If cosmetic_id is not in the catalog
        """
        cosmetic = self._catalog_index.get(cosmetic_id)
        if cosmetic is None:
            raise CosmeticNotFoundError(cosmetic_id, operation="add_to_inventory_by_id")
        return await self.add_to_inventory(cosmetic)

    async def get_inventory(self) -> CosmeticInventoryState:
        await self.initialize()
        return CosmeticInventoryState(items=list(self._items.values()), equipped=dict(self._equipped))

    async def get_by_category(self, category: CosmeticCategory) -> List[Cosmetic]:
        await self.initialize()
        return [item for item in self._items.values() if item.category == category]

    async def get_by_rarity(self, rarity: RarityTier) -> List[Cosmetic]:
        await self.initialize()
        return [item for item in self._items.values() if item.rarity == rarity]

    async def get_all_cosmetics(self) -> List[Cosmetic]:
        """Whole catalog, with owned entries carrying their unlock time"""
        await self.initialize()
        return [self._items.get(c.id, c) for c in self.catalog]

    async def is_owned(self, cosmetic_id: str) -> bool:
        await self.initialize()
        return cosmetic_id in self._items

    async def get_cosmetic_by_id(self, cosmetic_id: str) -> Optional[Cosmetic]:
        """Owned cosmetic by id, or None"""
        await self.initialize()
        return self._items.get(cosmetic_id)

    def get_catalog_cosmetic(self, cosmetic_id: str) -> Optional[Cosmetic]:
        return self._catalog_index.get(cosmetic_id)

    # ============================================
    # Equipment
    # ============================================

    async def equip_cosmetic(self, cosmetic_id: str) -> bool:
        """
        Equip an owned cosmetic in its category slot, replacing the occupant

        Returns:
            False (with a warning) if the cosmetic is not owned
        """
        await self.initialize()

        cosmetic = self._items.get(cosmetic_id)
        if cosmetic is None:
            logger.warning(f"Cannot equip: cosmetic {cosmetic_id} not owned")
            return False

        self._equipped[cosmetic.category] = cosmetic_id
        await self._persist()
        logger.info(f"Equipped {cosmetic_id} in {cosmetic.category.value} slot")
        return True

    async def unequip_cosmetic(self, cosmetic_id: str) -> bool:
        """
        Clear a slot, only if it currently holds exactly this cosmetic

        Returns:
            True if the slot was cleared
        """
        await self.initialize()

        cosmetic = self._items.get(cosmetic_id)
        if cosmetic is None:
            logger.warning(f"Cannot unequip: cosmetic {cosmetic_id} not owned")
            return False

        if self._equipped.get(cosmetic.category) != cosmetic_id:
            logger.debug(f"Cosmetic {cosmetic_id} is not currently equipped")
            return False

        del self._equipped[cosmetic.category]
        await self._persist()
        logger.info(f"Unequipped {cosmetic_id} from {cosmetic.category.value} slot")
        return True

    async def get_equipped_cosmetics(self) -> Dict[CosmeticCategory, str]:
        await self.initialize()
        return dict(self._equipped)

    async def is_equipped(self, cosmetic_id: str) -> bool:
        await self.initialize()
        cosmetic = self._items.get(cosmetic_id)
        if cosmetic is None:
            return False
        return self._equipped.get(cosmetic.category) == cosmetic_id

    # ============================================
    # Rendering
    # ============================================

    def _compose(self, override: Optional[Cosmetic] = None) -> List[CosmeticLayer]:
        layers = []
        for category, cosmetic_id in self._equipped.items():
            if override is not None and category == override.category:
                continue
            cosmetic = self._items.get(cosmetic_id)
            if cosmetic is not None:
                layers.append(_layer_for(cosmetic))
        if override is not None:
            layers.append(_layer_for(override))
        return sorted(layers, key=lambda layer: layer.render_data.layer_index)

    async def get_cosmetic_layers(self) -> List[CosmeticLayer]:
        """Equipped cosmetics as render layers, back to front"""
        await self.initialize()
        return self._compose()

    async def get_preview_render(self, cosmetic_id: str) -> Optional[CosmeticRenderData]:
        """Render data for an owned or catalog cosmetic, or None if unknown"""
        await self.initialize()
        cosmetic = self._items.get(cosmetic_id) or self._catalog_index.get(cosmetic_id)
        return cosmetic.render_data if cosmetic else None

    async def get_preview_layers(self, cosmetic_id: str) -> List[CosmeticLayer]:
        """
        Layers as they would look with cosmetic_id tried on

        The candidate replaces whatever is equipped in its category; owned and
        locked catalog items can both be previewed. An unknown id yields the
        current layers unchanged.
        """
        await self.initialize()
        candidate = self._items.get(cosmetic_id) or self._catalog_index.get(cosmetic_id)
        if candidate is None:
            logger.debug(f"Preview requested for unknown cosmetic {cosmetic_id}")
            return self._compose()
        return self._compose(override=candidate)

    # ============================================
    # Statistics
    # ============================================

    async def get_statistics(self) -> CosmeticStatistics:
        await self.initialize()
        by_category = {category: 0 for category in CosmeticCategory}
        by_rarity = {rarity: 0 for rarity in RarityTier}
        rarest_owned = None

        for item in self._items.values():
            by_category[item.category] += 1
            by_rarity[item.rarity] += 1
            if rarest_owned is None or item.rarity.rank > rarest_owned.rarity.rank:
                rarest_owned = item

        return CosmeticStatistics(
            total_owned=len(self._items),
            total_available=len(self.catalog),
            by_category=by_category,
            by_rarity=by_rarity,
            rarest_owned=rarest_owned
        )
