"""
Engine catalog

Registry of analysis engines with compatibility ranking, auto-selection
and usage statistics. A catalog is an ordinary object handed to the
orchestrator; there is no global registry.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from ..core.config import RECOMMENDED_SCORE_MIN, RATING_BONUS_MIN, USAGE_BONUS_MIN
from ..core.data_types import DataTypes
from .base import AnalysisEngine, EngineDescriptor, EngineStatus


@dataclass
class EngineUsage:
    count: int = 0
    average_rating: float = 0.0
    rating_count: int = 0
    last_used: Optional[float] = None


@dataclass(frozen=True)
class RankedEngine:
    descriptor: EngineDescriptor
    score: int
    is_affordable: bool
    is_recommended: bool
    reasons: Tuple[str, ...] = ()


class EngineCatalog:
    """
    Thread-safe engine registry

    Usage counters are the only state mutated after start-up; all mutation
    goes through one lock. Public methods log and return a default instead
    of raising.
    """

    SORT_KEYS = ("cost", "name", "quality", "popularity")

    def __init__(self):
        self._descriptors: Dict[str, EngineDescriptor] = {}
        self._executors: Dict[str, AnalysisEngine] = {}
        self._usage: Dict[str, EngineUsage] = {}
        self._lock = threading.Lock()

    def register(self, descriptor: EngineDescriptor, executor: AnalysisEngine,
                 usage: Optional[EngineUsage] = None) -> bool:
        """
        Add an engine

        Args:
            descriptor: Static engine description
            executor: Object implementing validate() and analyze()
            usage: Optional seed statistics (imported history)

        Returns:
            bool: True if registered
        """
        if not descriptor.id:
            logging.error("Refusing to register engine without an id")
            return False
        if descriptor.cost_per_analysis < 0:
            logging.error(f"Refusing to register {descriptor.id}: negative cost")
            return False

        with self._lock:
            if descriptor.id in self._descriptors:
                logging.warning(f"Engine {descriptor.id} already registered - replacing")
            self._descriptors[descriptor.id] = descriptor
            self._executors[descriptor.id] = executor
            self._usage[descriptor.id] = replace(usage) if usage is not None else EngineUsage()

        logging.info(f"Registered engine {descriptor.id} ({descriptor.name} v{descriptor.version}, "
                     f"{descriptor.cost_per_analysis} credits)")
        return True

    def unregister(self, engine_id: str) -> bool:
        with self._lock:
            if engine_id not in self._descriptors:
                return False
            del self._descriptors[engine_id]
            del self._executors[engine_id]
            del self._usage[engine_id]
        logging.info(f"Unregistered engine {engine_id}")
        return True

    def get(self, engine_id: str) -> Optional[EngineDescriptor]:
        return self._descriptors.get(engine_id)

    def executor(self, engine_id: str) -> Optional[AnalysisEngine]:
        return self._executors.get(engine_id)

    def set_status(self, engine_id: str, status: EngineStatus) -> bool:
        with self._lock:
            descriptor = self._descriptors.get(engine_id)
            if descriptor is None:
                return False
            self._descriptors[engine_id] = replace(descriptor, status=status)
        logging.info(f"Engine {engine_id} is now {status.value}")
        return True

    def list(self, sort_by: Optional[str] = None) -> List[EngineDescriptor]:
        """All registered engines, in registration order unless sort_by is given"""
        engines = list(self._descriptors.values())
        if sort_by is None:
            return engines

        if sort_by == "cost":
            return sorted(engines, key=lambda d: d.cost_per_analysis)
        if sort_by == "name":
            return sorted(engines, key=lambda d: d.name)
        if sort_by == "quality":
            return sorted(engines, key=lambda d: -self._usage_of(d.id).average_rating)
        if sort_by == "popularity":
            return sorted(engines, key=lambda d: -self._usage_of(d.id).count)

        logging.warning(f"Unknown sort key {sort_by!r}; expected one of {self.SORT_KEYS}")
        return engines

    def search(self, provider: Optional[str] = None, data_types: Optional[DataTypes] = None,
               max_cost: Optional[int] = None, min_rating: Optional[float] = None) -> List[EngineDescriptor]:
        """Filter engines; data_types matches engines supporting all requested types"""
        results = []
        for descriptor in self._descriptors.values():
            if provider is not None and descriptor.provider != provider:
                continue
            if data_types is not None and not descriptor.supported_data_types.covers(data_types):
                continue
            if max_cost is not None and descriptor.cost_per_analysis > max_cost:
                continue
            if min_rating is not None and self._usage_of(descriptor.id).average_rating < min_rating:
                continue
            results.append(descriptor)
        return results

    def _usage_of(self, engine_id: str) -> EngineUsage:
        return self._usage.get(engine_id) or EngineUsage()

    def _score(self, descriptor: EngineDescriptor, required: DataTypes, budget: int) -> RankedEngine:
        supported = descriptor.supported_data_types
        usage = self._usage_of(descriptor.id)
        score = 0
        reasons = []

        if required.eeg and supported.eeg:
            score += 40
            reasons.append("EEG supported")
        if required.ppg and supported.ppg:
            score += 40
            reasons.append("PPG supported")
        if required.acc and supported.acc:
            score += 20
            reasons.append("ACC supported")
        if usage.average_rating > RATING_BONUS_MIN:
            score += 10
            reasons.append(f"rated {usage.average_rating:.1f}")
        if usage.count > USAGE_BONUS_MIN:
            score += 5
            reasons.append(f"used {usage.count} times")

        affordable = descriptor.cost_per_analysis <= budget
        if affordable:
            score += 5
            reasons.append("within budget")

        return RankedEngine(
            descriptor=descriptor,
            score=score,
            is_affordable=affordable,
            is_recommended=score >= RECOMMENDED_SCORE_MIN and affordable,
            reasons=tuple(reasons),
        )

    def rank(self, required: DataTypes, budget: int) -> List[RankedEngine]:
        """
        Rank active engines for a measurement

        Returns:
            List[RankedEngine]: Recommended engines first, then by descending
            score, then by ascending cost; registration order breaks the
            remaining ties
        """
        try:
            ranked = [
                self._score(d, required, budget)
                for d in self._descriptors.values()
                if d.status == EngineStatus.ACTIVE
            ]
            ranked.sort(key=lambda r: (not r.is_recommended, -r.score, r.descriptor.cost_per_analysis))
            return ranked
        except Exception as e:
            logging.error(f"Engine ranking failed: {e}")
            return []

    def auto_select(self, required: DataTypes) -> Optional[EngineDescriptor]:
        """Cheapest active engine supporting at least one of the required data types"""
        candidates = [
            d for d in self._descriptors.values()
            if d.status == EngineStatus.ACTIVE and d.supported_data_types.intersects(required)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda d: d.cost_per_analysis)

    def record_usage(self, engine_id: str, rating: Optional[float] = None) -> bool:
        """
        Count one completed analysis and fold an optional rating into the average

        Returns:
            bool: False for unknown engines or out-of-range ratings
        """
        if rating is not None and not 0 <= rating <= 5:
            logging.warning(f"Ignoring out-of-range rating {rating} for {engine_id}")
            return False

        with self._lock:
            usage = self._usage.get(engine_id)
            if usage is None:
                logging.warning(f"Usage recorded for unknown engine {engine_id}")
                return False
            usage.count += 1
            usage.last_used = time.time()
            if rating is not None:
                usage.rating_count += 1
                usage.average_rating += (rating - usage.average_rating) / usage.rating_count
        return True

    def usage(self, engine_id: str) -> Optional[EngineUsage]:
        with self._lock:
            usage = self._usage.get(engine_id)
            return replace(usage) if usage is not None else None

    def stats(self) -> Dict:
        with self._lock:
            descriptors = list(self._descriptors.values())
            usages = [self._usage[d.id] for d in descriptors]
            total_ratings = sum(u.rating_count for u in usages)
            weighted = sum(u.average_rating * u.rating_count for u in usages)

        providers: Dict[str, int] = {}
        for descriptor in descriptors:
            providers[descriptor.provider] = providers.get(descriptor.provider, 0) + 1

        return {
            "total_engines": len(descriptors),
            "active_engines": sum(1 for d in descriptors if d.status == EngineStatus.ACTIVE),
            "total_usage": sum(u.count for u in usages),
            "average_rating": weighted / total_ratings if total_ratings else 0.0,
            "providers": providers,
        }
