import math
import random
from dataclasses import replace
from typing import Dict, List, Optional
import numpy as np

from .config import SELECTION_METHODS
from .domains import DomainSnapshot
from .errors import ConfigError
from .model import Assignment, Individual


def clone_individual(ind: Individual) -> Individual:
    # Los genes son inmutables: basta con copiar la lista
    return Individual(genes=list(ind.genes), fitness=ind.fitness, conflicts=ind.conflicts)


def tournament_size_for(pop_size: int, fraction: float = 0.1) -> int:
    # 0.1 * 30 == 3.0000000000000004
    return max(2, math.ceil(round(fraction * pop_size, 9)))


def tournament_selection(population: List[Individual], size: Optional[int] = None,
                         rng=random) -> Individual:
    """Muestra con reemplazo y devuelve el más apto de la muestra."""
    k = size if size is not None else tournament_size_for(len(population))
    sample = [rng.choice(population) for _ in range(k)]
    return max(sample, key=lambda ind: ind.fitness)


def roulette_selection(population: List[Individual], rng=random) -> Individual:
    """
    Ruleta sobre la aptitud en el orden de la población: se acumula hasta
    alcanzar el valor sorteado. Con aptitud total cero se devuelve el primero.
    """
    cumulative = np.cumsum([ind.fitness for ind in population])
    total = float(cumulative[-1])
    if total <= 0:
        return population[0]
    pick = rng.random() * total
    idx = int(np.searchsorted(cumulative, pick, side="left"))
    if idx >= len(population):
        # redondeo en la suma acumulada
        return population[0]
    return population[idx]


def select_parent(population: List[Individual], method: str,
                  tournament_fraction: float = 0.1, rng=random) -> Individual:
    if method == "tournament":
        k = tournament_size_for(len(population), tournament_fraction)
        return tournament_selection(population, k, rng)
    if method == "roulette":
        return roulette_selection(population, rng)
    raise ConfigError(f"Método de selección desconocido: {method!r} (opciones: {SELECTION_METHODS})")


def group_by_class(ind: Individual) -> Dict[int, List[Assignment]]:
    blocks: Dict[int, List[Assignment]] = {}
    for g in ind.genes:
        blocks.setdefault(g.class_id, []).append(g)
    return blocks


def class_block_crossover(p1: Individual, p2: Individual, rng=random) -> Individual:
    """
    Cruce por bloques de clase: para cada clase presente en algún padre se
    lanza una moneda y se copia el bloque completo de ese padre. Cada bloque
    viene entero de un padre válido, así que no hace falta reparar.
    """
    b1 = group_by_class(p1)
    b2 = group_by_class(p2)
    class_ids = list(b1)
    class_ids.extend(cid for cid in b2 if cid not in b1)

    child_genes: List[Assignment] = []
    for cid in class_ids:
        donor = b1 if rng.random() < 0.5 else b2
        child_genes.extend(donor.get(cid, []))
    return Individual(genes=child_genes)


def _mutate_gene(g: Assignment, snap: DomainSnapshot, rng) -> Assignment:
    kind = rng.randrange(3)
    if kind == 0:
        teachers = snap.eligible_teachers(g.subject_id)
        if teachers:
            return replace(g, teacher_id=rng.choice(teachers))
    elif kind == 1:
        rooms = snap.eligible_rooms(g.subject_id, g.class_id)
        if rooms:
            return replace(g, room_id=rng.choice(rooms).id)
    elif snap.time_slots:
        return replace(g, time_slot_id=rng.choice(snap.time_slots).id)
    return g


def mutate(ind: Individual, snap: DomainSnapshot, gene_rate: float = 0.1, rng=random) -> int:
    """
    Mutación gen a gen: cada gen muta con probabilidad gene_rate y solo
    cambia uno de sus campos (docente, aula o franja). Devuelve cuántos
    genes se sortearon para mutar. La aptitud queda obsoleta.
    """
    mutated = 0
    for i, g in enumerate(ind.genes):
        if rng.random() < gene_rate:
            ind.genes[i] = _mutate_gene(g, snap, rng)
            mutated += 1
    return mutated
