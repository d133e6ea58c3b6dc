"""
Repositorio de corridas: registro de estado y asignaciones persistidas.

El motor solo escribe en tres momentos (inicio, éxito, fallo) y reemplaza
las asignaciones de una corrida completa con borrar-e-insertar.
"""
import itertools
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Union

from .errors import RunNotFoundError
from .model import Assignment, GenerationRun, RunStatus


class RunRepository(ABC):
    @abstractmethod
    def create_run(self, name: str, population_size: int, max_generations: int,
                   crossover_rate: Union[str, float], mutation_rate: Union[str, float],
                   selection_method: str) -> GenerationRun:
        ...

    @abstractmethod
    def get_run(self, run_id: int) -> GenerationRun:
        ...

    @abstractmethod
    def list_runs(self) -> List[GenerationRun]:
        ...

    @abstractmethod
    def update_run(self, run_id: int, **fields) -> GenerationRun:
        ...

    @abstractmethod
    def replace_assignments(self, run_id: int, genes: List[Assignment]) -> None:
        ...

    @abstractmethod
    def get_assignments(self, run_id: int) -> List[Assignment]:
        ...

    @abstractmethod
    def delete_run(self, run_id: int) -> None:
        ...


class InMemoryRunRepository(RunRepository):
    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._runs: Dict[int, GenerationRun] = {}
        self._assignments: Dict[int, List[Assignment]] = {}

    def _get(self, run_id: int) -> GenerationRun:
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFoundError(f"Corrida {run_id} no existe") from None

    def create_run(self, name, population_size, max_generations, crossover_rate,
                   mutation_rate, selection_method) -> GenerationRun:
        with self._lock:
            run = GenerationRun(
                id=next(self._ids),
                name=name,
                population_size=population_size,
                max_generations=max_generations,
                crossover_rate=crossover_rate,
                mutation_rate=mutation_rate,
                selection_method=selection_method,
            )
            self._runs[run.id] = run
            return replace(run)

    def get_run(self, run_id: int) -> GenerationRun:
        with self._lock:
            return replace(self._get(run_id))

    def list_runs(self) -> List[GenerationRun]:
        with self._lock:
            return [replace(r) for r in self._runs.values()]

    def update_run(self, run_id: int, **fields) -> GenerationRun:
        with self._lock:
            current = self._get(run_id)
            if "status" in fields:
                RunStatus.check(current.status, fields["status"])
            updated = replace(current, **fields)
            self._runs[run_id] = updated
            return replace(updated)

    def replace_assignments(self, run_id: int, genes: List[Assignment]) -> None:
        with self._lock:
            self._get(run_id)
            self._assignments.pop(run_id, None)
            self._assignments[run_id] = list(genes)

    def get_assignments(self, run_id: int) -> List[Assignment]:
        with self._lock:
            self._get(run_id)
            return list(self._assignments.get(run_id, []))

    def delete_run(self, run_id: int) -> None:
        with self._lock:
            self._get(run_id)
            self._assignments.pop(run_id, None)
            del self._runs[run_id]
