# timetable_ga/initial_population.py
from typing import List, Optional
import random

from .domains import DomainSnapshot
from .model import Assignment, Individual


def random_gene(class_id: int, subject_id: int, snap: DomainSnapshot,
                rng=random) -> Optional[Assignment]:
    """
    Crea una sesión aleatoria para (clase, materia).

    Devuelve None si no hay docente, aula o franja posible: el gen se omite
    y el individuo queda con menos sesiones de las requeridas.
    """
    teachers = snap.eligible_teachers(subject_id)
    if not teachers:
        return None
    rooms = snap.eligible_rooms(subject_id, class_id)
    if not rooms or not snap.time_slots:
        return None

    # La franja se elige sin mirar disponibilidad: los choques se corrigen
    # con las generaciones, no al crear el individuo
    return Assignment(
        class_id=class_id,
        subject_id=subject_id,
        teacher_id=rng.choice(teachers),
        room_id=rng.choice(rooms).id,
        time_slot_id=rng.choice(snap.time_slots).id,
    )


def build_random_individual(snap: DomainSnapshot, rng=random) -> Individual:
    genes: List[Assignment] = []
    for cls in snap.classes:
        for sid in snap.required_subjects(cls.id):
            if not snap.has_subject(sid):
                continue
            for _ in range(snap.sessions_needed(sid)):
                g = random_gene(cls.id, sid, snap, rng)
                if g is not None:
                    genes.append(g)
    return Individual(genes=genes)


def build_initial_population(snap: DomainSnapshot, pop_size: int, rng=random) -> List[Individual]:
    return [build_random_individual(snap, rng) for _ in range(pop_size)]
