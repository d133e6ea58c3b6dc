# timetable_ga/domains.py
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple
import math

from .config import SESSION_LENGTH
from .errors import SnapshotError
from .model import Assignment, ClassGroup, Room, Subject, Teacher, TimeSlot, ROOM_PRACTICAL, ROOM_THEORY


@dataclass(frozen=True)
class DataGap:
    class_id: int
    subject_id: int
    reason: str


def sessions_for_hours(hours_per_week: int) -> int:
    """Número de sesiones de 2 horas necesarias, redondeando hacia arriba."""
    if hours_per_week <= 0:
        return 0
    return math.ceil(hours_per_week / SESSION_LENGTH)


class DomainSnapshot:
    """
    Vista de solo lectura de las entidades del dominio para una corrida.

    Se construye una vez por corrida; las relaciones docente→materias y
    clase→materias quedan resueltas en mapas de adyacencia.
    """

    def __init__(
        self,
        teachers: List[Teacher],
        classes: List[ClassGroup],
        subjects: List[Subject],
        rooms: List[Room],
        time_slots: List[TimeSlot],
        teacher_subjects: Dict[int, Set[int]],
        class_subjects: Dict[int, Set[int]],
    ):
        self.teachers = list(teachers)
        self.classes = list(classes)
        self.subjects = list(subjects)
        self.rooms = list(rooms)
        self.time_slots = list(time_slots)
        self.teacher_subjects = {tid: frozenset(s) for tid, s in teacher_subjects.items()}
        self.class_subjects = {cid: frozenset(s) for cid, s in class_subjects.items()}

        self._teachers = {t.id: t for t in self.teachers}
        self._classes = {c.id: c for c in self.classes}
        self._subjects = {s.id: s for s in self.subjects}
        self._rooms = {r.id: r for r in self.rooms}
        self._slots = {ts.id: ts for ts in self.time_slots}

        # subject_id -> docentes elegibles
        by_subject: Dict[int, List[int]] = {}
        for tid in sorted(self.teacher_subjects):
            for sid in self.teacher_subjects[tid]:
                by_subject.setdefault(sid, []).append(tid)
        self._eligible_teachers = by_subject
        self._room_cache: Dict[Tuple[int, int], List[Room]] = {}

    # --- búsquedas por id -------------------------------------------------

    def _lookup(self, table: dict, key: int, kind: str):
        try:
            return table[key]
        except KeyError:
            raise SnapshotError(f"{kind} {key!r} no existe en la instantánea") from None

    def teacher(self, teacher_id: int) -> Teacher:
        return self._lookup(self._teachers, teacher_id, "Docente")

    def class_group(self, class_id: int) -> ClassGroup:
        return self._lookup(self._classes, class_id, "Clase")

    def subject(self, subject_id: int) -> Subject:
        return self._lookup(self._subjects, subject_id, "Materia")

    def room(self, room_id: int) -> Room:
        return self._lookup(self._rooms, room_id, "Aula")

    def time_slot(self, time_slot_id: int) -> TimeSlot:
        return self._lookup(self._slots, time_slot_id, "Franja")

    # --- relaciones -------------------------------------------------------

    def required_subjects(self, class_id: int) -> List[int]:
        return sorted(self.class_subjects.get(class_id, ()))

    def has_subject(self, subject_id: int) -> bool:
        return subject_id in self._subjects

    def can_teach(self, teacher_id: int, subject_id: int) -> bool:
        return subject_id in self.teacher_subjects.get(teacher_id, ())

    def eligible_teachers(self, subject_id: int) -> List[int]:
        return self._eligible_teachers.get(subject_id, [])

    def eligible_rooms(self, subject_id: int, class_id: int) -> List[Room]:
        """
        Aulas del tipo que pide la materia (práctica/teoría), filtradas por
        departamento de la clase. Si el filtro deja el conjunto vacío se usa
        el conjunto sin filtrar por departamento.
        """
        key = (subject_id, class_id)
        if key in self._room_cache:
            return self._room_cache[key]
        subject = self.subject(subject_id)
        cls = self.class_group(class_id)
        wanted = ROOM_PRACTICAL if subject.requires_practical else ROOM_THEORY
        typed = [r for r in self.rooms if r.type == wanted]
        by_dept = [
            r for r in typed
            if not r.allowed_departments or cls.department in r.allowed_departments
        ]
        rooms = by_dept if by_dept else typed
        self._room_cache[key] = rooms
        return rooms

    def sessions_needed(self, subject_id: int) -> int:
        return sessions_for_hours(self.subject(subject_id).hours_per_week)

    # --- validación -------------------------------------------------------

    def validate_assignment(self, gene: Assignment) -> None:
        self.class_group(gene.class_id)
        self.subject(gene.subject_id)
        self.teacher(gene.teacher_id)
        self.room(gene.room_id)
        self.time_slot(gene.time_slot_id)

    def find_data_gaps(self) -> List[DataGap]:
        gaps: List[DataGap] = []
        for cls in self.classes:
            for sid in self.required_subjects(cls.id):
                if not self.has_subject(sid):
                    gaps.append(DataGap(cls.id, sid, "materia inexistente"))
                    continue
                if not self.eligible_teachers(sid):
                    gaps.append(DataGap(cls.id, sid, "sin docentes elegibles"))
                if not self.eligible_rooms(sid, cls.id):
                    gaps.append(DataGap(cls.id, sid, "sin aulas del tipo requerido"))
        if self.classes and not self.time_slots:
            gaps.append(DataGap(-1, -1, "sin franjas horarias"))
        return gaps


def _index_pairs(pairs: Iterable[Tuple[int, int]], keys: Iterable[int]) -> Dict[int, Set[int]]:
    out: Dict[int, Set[int]] = {k: set() for k in keys}
    for left, right in pairs:
        out.setdefault(int(left), set()).add(int(right))
    return out


def build_domain_snapshot(
    teachers: List[Teacher],
    classes: List[ClassGroup],
    subjects: List[Subject],
    rooms: List[Room],
    time_slots: List[TimeSlot],
    teacher_subjects: Iterable[Tuple[int, int]],
    class_subjects: Iterable[Tuple[int, int]],
) -> DomainSnapshot:
    """Arma la instantánea a partir de las entidades y las filas de relación (id, id)."""
    return DomainSnapshot(
        teachers=teachers,
        classes=classes,
        subjects=subjects,
        rooms=rooms,
        time_slots=time_slots,
        teacher_subjects=_index_pairs(teacher_subjects, (t.id for t in teachers)),
        class_subjects=_index_pairs(class_subjects, (c.id for c in classes)),
    )
