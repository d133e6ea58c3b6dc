"""
Orquestación de una corrida de generación de horarios.

Una corrida pasa por pending -> in_progress -> completed | failed. Cualquier
excepción deja la corrida en failed sin escribir asignaciones parciales; no
hay reintentos ni cancelación.
"""
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional

from .config import GAConfig, SELECTION_METHODS
from .domains import DomainSnapshot
from .errors import ConfigError, DataGapError, RunStateError
from .evaluation import count_conflicts
from .ga import GeneticSolver, SolverResult
from .model import GenerationRun, RunParams, RunStatus
from .storage import RunRepository

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[], DomainSnapshot]


def _positive_int(value, name: str) -> int:
    try:
        out = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} debe ser entero: {value!r}") from None
    if isinstance(value, float) and value != out:
        raise ConfigError(f"{name} debe ser entero: {value!r}")
    return out


def _rate(value, name: str) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} debe ser numérico: {value!r}") from None
    if not 0.0 <= out <= 1.0:
        raise ConfigError(f"{name} debe estar en [0, 1]: {value!r}")
    return out


def validate_run_params(run: GenerationRun) -> RunParams:
    pop = _positive_int(run.population_size, "population_size")
    if pop <= 0:
        raise ConfigError("population_size debe ser > 0")
    gens = _positive_int(run.max_generations, "max_generations")
    if gens < 0:
        raise ConfigError("max_generations no puede ser negativo")
    if run.selection_method not in SELECTION_METHODS:
        raise ConfigError(f"Método de selección desconocido: {run.selection_method!r}")
    return RunParams(
        population_size=pop,
        max_generations=gens,
        crossover_rate=_rate(run.crossover_rate, "crossover_rate"),
        mutation_rate=_rate(run.mutation_rate, "mutation_rate"),
        selection_method=run.selection_method,
    )


@dataclass
class RunContext:
    run_id: int
    repository: RunRepository
    snapshot_source: SnapshotSource
    cfg: GAConfig = field(default_factory=GAConfig)
    result: Optional[SolverResult] = None


def _check_data_gaps(snap: DomainSnapshot, strict: bool) -> None:
    gaps = snap.find_data_gaps()
    if not gaps:
        return
    if strict:
        raise DataGapError(gaps)
    for gap in gaps:
        logger.warning("Hueco de datos: clase=%s materia=%s (%s); se omiten sus sesiones",
                       gap.class_id, gap.subject_id, gap.reason)


def execute_run(ctx: RunContext) -> GenerationRun:
    """
    Ejecuta la corrida de forma síncrona y devuelve el registro final.
    Una corrida que no está pendiente lanza RunStateError sin tocar el registro.
    """
    repo = ctx.repository
    run = repo.get_run(ctx.run_id)
    # Solo una corrida pendiente se ejecuta, y una sola vez
    if run.status != RunStatus.PENDING:
        raise RunStateError(f"La corrida {ctx.run_id} no está pendiente (estado {run.status})")
    try:
        ctx.cfg.validate()
        params = validate_run_params(run)
        repo.update_run(ctx.run_id, status=RunStatus.IN_PROGRESS, started_at=datetime.now())
        start = time.monotonic()

        snap = ctx.snapshot_source()
        _check_data_gaps(snap, ctx.cfg.strict_data_gaps)

        ctx.result = GeneticSolver(snap, ctx.cfg).evolve(params)
        best = ctx.result.best
        for gene in best.genes:
            snap.validate_assignment(gene)
        conflicts = count_conflicts(best, snap)

        repo.replace_assignments(ctx.run_id, best.genes)
        elapsed = int(time.monotonic() - start)
        logger.info("Corrida %s completada: aptitud=%.4f conflictos=%d tiempo=%ds",
                    ctx.run_id, best.fitness, conflicts, elapsed)
        return repo.update_run(
            ctx.run_id,
            status=RunStatus.COMPLETED,
            fitness_value=str(best.fitness),
            execution_time=elapsed,
            conflict_count=conflicts,
            completed_at=datetime.now(),
        )
    except Exception as exc:
        logger.exception("Error en la corrida %s", ctx.run_id)
        return repo.update_run(
            ctx.run_id,
            status=RunStatus.FAILED,
            error=str(exc) or exc.__class__.__name__,
            completed_at=datetime.now(),
        )


class RunExecutor:
    """
    Lanza corridas en segundo plano. submit() devuelve el id de inmediato y
    el llamador consulta el estado en el repositorio.
    """

    def __init__(self, repository: RunRepository, snapshot_source: SnapshotSource,
                 cfg: Optional[GAConfig] = None, max_workers: int = 1):
        self.repository = repository
        self.snapshot_source = snapshot_source
        self.cfg = cfg or GAConfig()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="timetable-run")
        self._futures: Dict[int, Future] = {}
        self.contexts: Dict[int, RunContext] = {}

    def submit(self, run_id: int) -> int:
        ctx = RunContext(run_id, self.repository, self.snapshot_source, self.cfg)
        self.contexts[run_id] = ctx
        self._futures[run_id] = self._pool.submit(execute_run, ctx)
        return run_id

    def status(self, run_id: int) -> str:
        return self.repository.get_run(run_id).status

    def wait(self, run_id: int, timeout: Optional[float] = None) -> GenerationRun:
        return self._futures[run_id].result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
