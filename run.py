import argparse
import logging
from pathlib import Path
from typing import List, Optional
import pandas as pd

from timetable_ga.config import GAConfig, load_config
from timetable_ga.data_loader import load_snapshot
from timetable_ga.domains import DomainSnapshot
from timetable_ga.evaluation import EvaluationResult, evaluate
from timetable_ga.model import Assignment, GenerationRun, Individual, RunStatus
from timetable_ga.runner import RunExecutor
from timetable_ga.storage import InMemoryRunRepository


def schedule_to_dataframe(genes: List[Assignment], snap: DomainSnapshot) -> pd.DataFrame:
    day_order = {}
    for ts in snap.time_slots:
        day_order.setdefault(ts.day, len(day_order))
    data = []
    for g in genes:
        cls = snap.class_group(g.class_id)
        subject = snap.subject(g.subject_id)
        slot = snap.time_slot(g.time_slot_id)
        data.append(
            {
                "Clase": cls.name,
                "Departamento": cls.department,
                "Materia": subject.name,
                "Codigo": subject.code,
                "Docente": snap.teacher(g.teacher_id).name,
                "Aula": snap.room(g.room_id).name,
                "Dia": slot.day,
                "Hora_Inicio": slot.start_time,
                "Hora_Fin": slot.end_time,
                "_dia_idx": day_order.get(slot.day, len(day_order)),
            }
        )
    columns = ["Clase", "Departamento", "Materia", "Codigo", "Docente", "Aula",
               "Dia", "Hora_Inicio", "Hora_Fin", "_dia_idx"]
    df = pd.DataFrame(data, columns=columns)
    df = df.sort_values(["Clase", "_dia_idx", "Hora_Inicio"], kind="stable")
    return df.drop(columns="_dia_idx").reset_index(drop=True)


def export_outputs(out_dir: Path, df_schedule: pd.DataFrame, eval_res: EvaluationResult,
                   run: GenerationRun, history: Optional[List[dict]] = None) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    df_schedule.to_csv(out_dir / "schedule.csv", index=False)
    conflicts = pd.DataFrame(
        [
            {"tipo": "docente_no_elegible", "valor": eval_res.ineligible_teacher},
            {"tipo": "aula_tipo_incorrecto", "valor": eval_res.wrong_room_type},
            {"tipo": "aula_pequena", "valor": eval_res.room_too_small},
            {"tipo": "dia_no_disponible", "valor": eval_res.unavailable_day},
            {"tipo": "franja_no_disponible", "valor": eval_res.unavailable_time_slot},
            {"tipo": "choque_docente", "valor": eval_res.teacher_clashes},
            {"tipo": "choque_clase", "valor": eval_res.class_clashes},
            {"tipo": "choque_aula", "valor": eval_res.room_clashes},
            {"tipo": "conflictos", "valor": eval_res.conflicts},
        ]
    )
    conflicts.to_csv(out_dir / "conflicts.csv", index=False)
    if history:
        pd.DataFrame(history).to_csv(out_dir / "history.csv", index=False)
    metrics = {
        "run_id": run.id,
        "status": run.status,
        "fitness": run.fitness_value,
        "conflicts": run.conflict_count,
        "time_sec": run.execution_time,
        "generations_ran": len(history) - 1 if history else 0,
    }
    pd.DataFrame([metrics]).to_csv(out_dir / "metrics.csv", index=False)


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Generación de horarios con algoritmo genético")
    parser.add_argument("--config", default="config.yaml", help="Ruta al archivo de configuración")
    parser.add_argument("--data_dir", default="data", help="Directorio con los CSV de entrada")
    parser.add_argument("--out_dir", default="outputs", help="Directorio de salida")
    parser.add_argument("--name", default="Corrida CLI")
    parser.add_argument("--population", type=int, help="Tamaño de población")
    parser.add_argument("--generations", type=int, help="Máximo de generaciones")
    parser.add_argument("--crossover", type=float, help="Tasa de cruce")
    parser.add_argument("--mutation", type=float, help="Tasa de mutación")
    parser.add_argument("--selection", choices=["tournament", "roulette"])
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg: GAConfig = load_config(args.config)
    print("Cargando datos...")
    snap = load_snapshot(args.data_dir)

    repo = InMemoryRunRepository()
    run = repo.create_run(
        name=args.name,
        population_size=args.population if args.population is not None else cfg.population_size,
        max_generations=args.generations if args.generations is not None else cfg.max_generations,
        crossover_rate=str(args.crossover if args.crossover is not None else cfg.crossover_rate),
        mutation_rate=str(args.mutation if args.mutation is not None else cfg.mutation_rate),
        selection_method=args.selection or cfg.selection_method,
    )
    print(f"Generaciones: {run.max_generations} | Población: {run.population_size} "
          f"| Selección: {run.selection_method}")

    executor = RunExecutor(repo, lambda: snap, cfg)
    try:
        executor.submit(run.id)
        final = executor.wait(run.id)
    finally:
        executor.shutdown()

    if final.status != RunStatus.COMPLETED:
        print(f"La corrida falló: {final.error}")
        raise SystemExit(1)

    genes = repo.get_assignments(run.id)
    best = Individual(genes=genes)
    eval_res = evaluate(best, snap, cfg.weights, explain=True)

    print("\n--- MEJOR SOLUCIÓN ---")
    print(f"Aptitud: {best.fitness:.5f} | Conflictos: {final.conflict_count} "
          f"| Sesiones: {len(genes)} | Tiempo: {final.execution_time}s")
    for line in eval_res.violations[:20]:
        print(f"  - {line}")

    ctx = executor.contexts[run.id]
    history = ctx.result.history if ctx.result else None
    out_dir = Path(args.out_dir)
    export_outputs(out_dir, schedule_to_dataframe(genes, snap), eval_res, final, history)
    print(f"Se guardaron resultados en {out_dir}/schedule.csv y {out_dir}/conflicts.csv")


if __name__ == "__main__":
    main()
