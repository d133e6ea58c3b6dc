# timetable_ga/data_loader.py
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple
import logging

import pandas as pd

from .domains import DomainSnapshot, build_domain_snapshot
from .errors import DataLoadError
from .model import ClassGroup, Room, Subject, Teacher, TimeSlot, ROOM_PRACTICAL, ROOM_THEORY

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    "teachers": ["teacher_id", "name"],
    "classes": ["class_id", "name", "department"],
    "subjects": ["subject_id", "name", "hours_per_week"],
    "rooms": ["room_id", "name", "type", "capacity"],
    "time_slots": ["time_slot_id", "day", "start_time", "end_time"],
    "teacher_subjects": ["teacher_id", "subject_id"],
    "class_subjects": ["class_id", "subject_id"],
}

# Etiquetas heredadas del sistema anterior
ROOM_TYPE_ALIASES = {
    "teori": ROOM_THEORY,
    "theory": ROOM_THEORY,
    "praktikum": ROOM_PRACTICAL,
    "practical": ROOM_PRACTICAL,
}


@dataclass(frozen=True)
class DataBundle:
    teachers: pd.DataFrame
    classes: pd.DataFrame
    subjects: pd.DataFrame
    rooms: pd.DataFrame
    time_slots: pd.DataFrame
    teacher_subjects: pd.DataFrame
    class_subjects: pd.DataFrame


def _read_table(data_dir: Path, name: str) -> pd.DataFrame:
    path = data_dir / f"{name}.csv"
    if not path.exists():
        raise DataLoadError(f"Falta el archivo {path}")
    # Las columnas de texto (horas "07:00", listas) se leen tal cual
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = [c for c in REQUIRED_COLUMNS[name] if c not in df.columns]
    if missing:
        raise DataLoadError(f"{path.name}: faltan columnas {missing}")
    return df


def load_data(data_dir: str) -> DataBundle:
    base = Path(data_dir)
    tables = {name: _read_table(base, name) for name in REQUIRED_COLUMNS}
    logger.info(
        "Datos cargados de %s: %d docentes, %d clases, %d materias, %d aulas, %d franjas",
        base, len(tables["teachers"]), len(tables["classes"]), len(tables["subjects"]),
        len(tables["rooms"]), len(tables["time_slots"]),
    )
    return DataBundle(**tables)


def _split_list(value) -> Tuple[str, ...]:
    # "Senin;Selasa" -> ("Senin", "Selasa")
    text = str(value or "").strip()
    if not text:
        return ()
    return tuple(part.strip() for part in text.split(";") if part.strip())


def _to_int(value, column: str, default=None) -> int:
    text = str(value).strip()
    if text == "" and default is not None:
        return default
    try:
        return int(float(text))
    except ValueError:
        raise DataLoadError(f"Valor no numérico en {column}: {value!r}") from None


def _to_bool(value) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "y", "si", "sí", "ya")


def _col(row, name: str, default=""):
    return row[name] if name in row.index else default


def bundle_to_snapshot(bundle: DataBundle) -> DomainSnapshot:
    teachers: List[Teacher] = [
        Teacher(
            id=_to_int(r["teacher_id"], "teacher_id"),
            name=str(r["name"]),
            max_hours_per_week=_to_int(_col(r, "max_hours_per_week"), "max_hours_per_week", 24),
            unavailable_days=_split_list(_col(r, "unavailable_days")),
            unavailable_time_slots=_split_list(_col(r, "unavailable_time_slots")),
            preferred_days=_split_list(_col(r, "preferred_days")),
            preferred_time_slots=_split_list(_col(r, "preferred_time_slots")),
        )
        for _, r in bundle.teachers.iterrows()
    ]
    classes = [
        ClassGroup(
            id=_to_int(r["class_id"], "class_id"),
            name=str(r["name"]),
            department=str(r["department"]).strip(),
            capacity=_to_int(_col(r, "capacity"), "capacity", 30),
        )
        for _, r in bundle.classes.iterrows()
    ]
    subjects = [
        Subject(
            id=_to_int(r["subject_id"], "subject_id"),
            name=str(r["name"]),
            code=str(_col(r, "code")),
            hours_per_week=_to_int(r["hours_per_week"], "hours_per_week"),
            requires_practical=_to_bool(_col(r, "requires_practical", "false")),
        )
        for _, r in bundle.subjects.iterrows()
    ]
    rooms = []
    for _, r in bundle.rooms.iterrows():
        raw_type = str(r["type"]).strip().lower()
        if raw_type not in ROOM_TYPE_ALIASES:
            raise DataLoadError(f"Tipo de aula desconocido: {r['type']!r}")
        rooms.append(
            Room(
                id=_to_int(r["room_id"], "room_id"),
                name=str(r["name"]),
                type=ROOM_TYPE_ALIASES[raw_type],
                capacity=_to_int(r["capacity"], "capacity"),
                allowed_departments=_split_list(_col(r, "allowed_departments")),
            )
        )
    time_slots = [
        TimeSlot(
            id=_to_int(r["time_slot_id"], "time_slot_id"),
            day=str(r["day"]).strip(),
            start_time=str(r["start_time"]).strip(),
            end_time=str(r["end_time"]).strip(),
        )
        for _, r in bundle.time_slots.iterrows()
    ]
    teacher_subjects = [
        (_to_int(r["teacher_id"], "teacher_id"), _to_int(r["subject_id"], "subject_id"))
        for _, r in bundle.teacher_subjects.iterrows()
    ]
    class_subjects = [
        (_to_int(r["class_id"], "class_id"), _to_int(r["subject_id"], "subject_id"))
        for _, r in bundle.class_subjects.iterrows()
    ]
    return build_domain_snapshot(
        teachers, classes, subjects, rooms, time_slots, teacher_subjects, class_subjects
    )


def load_snapshot(data_dir: str) -> DomainSnapshot:
    return bundle_to_snapshot(load_data(data_dir))
