# timetable_ga/evaluation.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import numpy as np

from .config import FitnessWeights, SESSION_LENGTH
from .domains import DomainSnapshot
from .model import Assignment, Individual


@dataclass
class EvaluationResult:
    fitness: float
    conflicts: int
    # penalizaciones por gen
    ineligible_teacher: int = 0
    wrong_room_type: int = 0
    room_too_small: int = 0
    unavailable_day: int = 0
    unavailable_time_slot: int = 0
    preferred_day: int = 0
    preferred_time_slot: int = 0
    # choques (unidades = ocupación - 1)
    teacher_clashes: int = 0
    class_clashes: int = 0
    room_clashes: int = 0
    teacher_hours: Dict[int, int] = field(default_factory=dict)
    overtime_hours: Dict[int, int] = field(default_factory=dict)
    violations: List[str] = field(default_factory=list)

    @property
    def double_bookings(self) -> int:
        return self.teacher_clashes + self.class_clashes + self.room_clashes


def _clash_units(genes: Sequence[Assignment], attr: str) -> int:
    """Suma de (ocupación - 1) sobre las claves (recurso, franja) repetidas."""
    pairs = np.array([(getattr(g, attr), g.time_slot_id) for g in genes], dtype=np.int64)
    _, counts = np.unique(pairs, axis=0, return_counts=True)
    return int((counts - 1).sum())


def _walk(ind: Individual, snap: DomainSnapshot, w: FitnessWeights,
          explain: bool = False) -> EvaluationResult:
    res = EvaluationResult(fitness=1.0, conflicts=0)
    if not ind.genes:
        return res

    score = 1.0
    for g in ind.genes:
        teacher = snap.teacher(g.teacher_id)
        subject = snap.subject(g.subject_id)
        room = snap.room(g.room_id)
        cls = snap.class_group(g.class_id)
        slot = snap.time_slot(g.time_slot_id)

        if not snap.can_teach(g.teacher_id, g.subject_id):
            score -= w.ineligible_teacher
            res.ineligible_teacher += 1
            if explain:
                res.violations.append(f"Docente {teacher.name} no dicta {subject.name} ({cls.name})")
        if subject.requires_practical and not room.is_practical:
            score -= w.practical_in_theory_room
            res.wrong_room_type += 1
            if explain:
                res.violations.append(f"{subject.name} ({cls.name}) requiere aula práctica, asignada {room.name}")
        if cls.capacity > room.capacity:
            score -= w.room_too_small
            res.room_too_small += 1
            if explain:
                res.violations.append(f"Aula {room.name} ({room.capacity}) pequeña para {cls.name} ({cls.capacity})")

        if slot.day in teacher.unavailable_days:
            score -= w.unavailable_day
            res.unavailable_day += 1
            if explain:
                res.violations.append(f"Docente {teacher.name} no disponible el {slot.day}")
        if slot.key in teacher.unavailable_time_slots:
            score -= w.unavailable_time_slot
            res.unavailable_time_slot += 1
            if explain:
                res.violations.append(f"Docente {teacher.name} no disponible en {slot.key}")
        if slot.day in teacher.preferred_days:
            score += w.preferred_day
            res.preferred_day += 1
        if slot.key in teacher.preferred_time_slots:
            score += w.preferred_time_slot
            res.preferred_time_slot += 1

        res.teacher_hours[g.teacher_id] = res.teacher_hours.get(g.teacher_id, 0) + SESSION_LENGTH

    # Tres pasadas de doble reserva, una por tipo de recurso
    res.teacher_clashes = _clash_units(ind.genes, "teacher_id")
    res.class_clashes = _clash_units(ind.genes, "class_id")
    res.room_clashes = _clash_units(ind.genes, "room_id")
    for label, units in (("docente", res.teacher_clashes), ("clase", res.class_clashes),
                         ("aula", res.room_clashes)):
        if units:
            score -= w.double_booking * units
            if explain:
                res.violations.append(f"Choques de {label}: {units}")

    for tid, hours in res.teacher_hours.items():
        teacher = snap.teacher(tid)
        if hours > teacher.max_hours_per_week:
            excess = hours - teacher.max_hours_per_week
            score -= w.overtime_per_session * (excess / SESSION_LENGTH)
            res.overtime_hours[tid] = excess
            if explain:
                res.violations.append(
                    f"Docente {teacher.name}: {hours}h asignadas, máximo {teacher.max_hours_per_week}h"
                )

    res.fitness = max(0.0, min(1.0, score))
    # Conteo entero de restricciones duras; capacidad, carga y preferencias no cuentan
    res.conflicts = (
        res.ineligible_teacher
        + res.wrong_room_type
        + res.unavailable_day
        + res.unavailable_time_slot
        + res.double_bookings
    )
    return res


def calculate_fitness(ind: Individual, snap: DomainSnapshot,
                      weights: Optional[FitnessWeights] = None) -> float:
    return _walk(ind, snap, weights or FitnessWeights()).fitness


def count_conflicts(ind: Individual, snap: DomainSnapshot) -> int:
    return _walk(ind, snap, FitnessWeights()).conflicts


def evaluate(ind: Individual, snap: DomainSnapshot,
             weights: Optional[FitnessWeights] = None, explain: bool = False) -> EvaluationResult:
    """
    Recalcula aptitud y conflictos del individuo y devuelve el detalle.
    Con explain=True también arma las líneas de violaciones para el reporte.
    """
    res = _walk(ind, snap, weights or FitnessWeights(), explain)
    ind.fitness = res.fitness
    ind.conflicts = res.conflicts
    return res


def evaluate_population(population: List[Individual], snap: DomainSnapshot,
                        weights: Optional[FitnessWeights] = None) -> List[Individual]:
    for ind in population:
        evaluate(ind, snap, weights)
    return population
