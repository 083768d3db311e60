# Pipeline stages module
from .normalization import DataNormalizationStage
from .scoring import DeterministicScoringStage
from .ai_scoring import AIScoringStage
