import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List
import numpy as np

from .config import GAConfig
from .domains import DomainSnapshot
from .evaluation import evaluate, evaluate_population
from .initial_population import build_initial_population
from .model import Individual, RunParams
from .operators import class_block_crossover, clone_individual, mutate, select_parent

logger = logging.getLogger(__name__)


@dataclass
class SolverResult:
    best: Individual
    generations_run: int
    stopped_early: bool
    history: List[Dict] = field(default_factory=list)


def elite_count_for(pop_size: int, fraction: float = 0.1) -> int:
    return max(1, math.floor(round(fraction * pop_size, 9)))


def sort_population(population: List[Individual]) -> None:
    population.sort(key=lambda x: x.fitness, reverse=True)


class GeneticSolver:
    def __init__(self, snap: DomainSnapshot, cfg: GAConfig):
        self.snap = snap
        self.cfg = cfg
        self.history: List[Dict] = []
        # Generador propio: corridas concurrentes no comparten estado aleatorio
        self.rng = random.Random(cfg.seed)

    def _record(self, gen: int, population: List[Individual]) -> Dict:
        fit = np.array([ind.fitness for ind in population], dtype=float)
        row = {
            "generation": gen,
            "best_fitness": float(fit.max()),
            "avg_fitness": float(fit.mean()),
            "std_fitness": float(fit.std()),
            "best_conflicts": population[0].conflicts,
        }
        self.history.append(row)
        return row

    def _breed(self, population: List[Individual], params: RunParams) -> Individual:
        method, frac = params.selection_method, self.cfg.tournament_fraction
        p1 = select_parent(population, method, frac, self.rng)
        p2 = select_parent(population, method, frac, self.rng)
        if self.rng.random() < params.crossover_rate:
            child = class_block_crossover(p1, p2, self.rng)
        else:
            child = clone_individual(p1)
        if self.rng.random() < params.mutation_rate:
            mutate(child, self.snap, self.cfg.gene_mutation_rate, self.rng)
        evaluate(child, self.snap, self.cfg.weights)
        return child

    def evolve(self, params: RunParams) -> SolverResult:
        if self.cfg.seed is not None:
            self.rng.seed(self.cfg.seed)

        population = build_initial_population(self.snap, params.population_size, self.rng)
        evaluate_population(population, self.snap, self.cfg.weights)
        sort_population(population)
        self._record(0, population)
        logger.info("Generación inicial: mejor aptitud=%.4f", population[0].fitness)

        n_elite = min(elite_count_for(params.population_size, self.cfg.elite_fraction), len(population))
        generations_run = 0
        stopped_early = False

        for gen in range(params.max_generations):
            # Elitismo: los mejores pasan sin cambios
            new_pop: List[Individual] = [clone_individual(ind) for ind in population[:n_elite]]

            while len(new_pop) < params.population_size:
                new_pop.append(self._breed(population, params))

            # Barrera de generación: toda la nueva población está evaluada
            population = new_pop
            sort_population(population)
            generations_run = gen + 1
            row = self._record(generations_run, population)

            if gen % self.cfg.log_every == 0 or gen == params.max_generations - 1:
                logger.info(
                    "Gen %d: mejor aptitud=%.4f promedio=%.4f conflictos=%d",
                    gen, row["best_fitness"], row["avg_fitness"], row["best_conflicts"],
                )
            if population[0].fitness > self.cfg.target_fitness:
                logger.info("Solución satisfactoria en la generación %d", gen)
                stopped_early = True
                break

        return SolverResult(
            best=population[0],
            generations_run=generations_run,
            stopped_early=stopped_early,
            history=self.history,
        )
