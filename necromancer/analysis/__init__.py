from necromancer.analysis.client_base import BaseAnalysisClient
from necromancer.analysis.engine import Engine, build_engine
from necromancer.analysis.factory import AnalysisClientFactory

__all__ = ["AnalysisClientFactory", "BaseAnalysisClient", "Engine", "build_engine"]
