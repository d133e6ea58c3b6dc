# timetable_ga/model.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union

from .errors import RunStateError

ROOM_THEORY = "theory"
ROOM_PRACTICAL = "practical"


@dataclass(frozen=True)
class Teacher:
    id: int
    name: str
    max_hours_per_week: int = 24
    unavailable_days: Tuple[str, ...] = ()
    unavailable_time_slots: Tuple[str, ...] = ()   # "Senin-07:00"
    preferred_days: Tuple[str, ...] = ()
    preferred_time_slots: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ClassGroup:
    id: int
    name: str
    department: str
    capacity: int = 30


@dataclass(frozen=True)
class Subject:
    id: int
    name: str
    code: str
    hours_per_week: int
    requires_practical: bool = False


@dataclass(frozen=True)
class Room:
    id: int
    name: str
    type: str                   # "theory" | "practical"
    capacity: int
    allowed_departments: Tuple[str, ...] = ()

    @property
    def is_practical(self) -> bool:
        return self.type == ROOM_PRACTICAL


@dataclass(frozen=True)
class TimeSlot:
    id: int
    day: str
    start_time: str
    end_time: str

    @property
    def key(self) -> str:
        # Mismo formato que las preferencias/indisponibilidades del docente
        return f"{self.day}-{self.start_time}"


@dataclass(frozen=True)
class Assignment:
    # Un "gen" = una sesión de 2 horas
    class_id: int
    subject_id: int
    teacher_id: int
    room_id: int
    time_slot_id: int


@dataclass
class Individual:
    genes: List[Assignment]
    fitness: float = 0.0
    conflicts: int = 0


class RunStatus:
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    # Una corrida nunca vuelve a un estado anterior
    TRANSITIONS = {
        PENDING: {IN_PROGRESS, FAILED},
        IN_PROGRESS: {COMPLETED, FAILED},
        COMPLETED: set(),
        FAILED: set(),
    }

    @classmethod
    def check(cls, current: str, new: str) -> None:
        if new not in cls.TRANSITIONS.get(current, set()):
            raise RunStateError(f"Transición inválida {current} -> {new}")


@dataclass
class GenerationRun:
    id: int
    name: str
    population_size: int
    max_generations: int
    crossover_rate: Union[str, float]   # texto en el almacén
    mutation_rate: Union[str, float]
    selection_method: str
    status: str = RunStatus.PENDING
    fitness_value: Optional[str] = None
    execution_time: Optional[int] = None    # segundos
    conflict_count: Optional[int] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class RunParams:
    """Parámetros de una corrida ya validados y convertidos a su tipo."""
    population_size: int
    max_generations: int
    crossover_rate: float
    mutation_rate: float
    selection_method: str
