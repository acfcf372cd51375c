"""Service layer: the progression pipeline and its dependency container"""

from pet_progression.services.container import (
    ProgressionContainer,
    build_progression_service,
    create_store,
)
from pet_progression.services.progression_service import EvolutionTracker, ProgressionService

__all__ = [
    'ProgressionContainer',
    'build_progression_service',
    'create_store',
    'EvolutionTracker',
    'ProgressionService',
]
