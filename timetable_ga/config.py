"""
Configuración del algoritmo genético.

Incluye un cargador desde YAML para dejar los parámetros del motor
reproducibles: tamaños, tasas, pesos de la función de aptitud y semilla.
"""
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Dict, Optional, Any

import yaml

from .errors import ConfigError


SELECTION_METHODS = ("tournament", "roulette")

# Cada gen representa una sesión de 2 horas
SESSION_LENGTH = 2


@dataclass
class FitnessWeights:
    # Penalizaciones por gen
    ineligible_teacher: float = 0.10
    practical_in_theory_room: float = 0.05
    room_too_small: float = 0.05
    unavailable_day: float = 0.20
    unavailable_time_slot: float = 0.20
    # Bonos por preferencia
    preferred_day: float = 0.02
    preferred_time_slot: float = 0.02
    # Agregados
    double_booking: float = 0.20
    overtime_per_session: float = 0.10


@dataclass
class GAConfig:
    # Parámetros por defecto de una corrida (la corrida puede sobreescribirlos)
    population_size: int = 100
    max_generations: int = 100
    crossover_rate: float = 0.8
    mutation_rate: float = 0.1
    selection_method: str = "tournament"

    # Algoritmo genético
    elite_fraction: float = 0.1
    tournament_fraction: float = 0.1
    gene_mutation_rate: float = 0.1
    target_fitness: float = 0.95
    log_every: int = 10
    seed: Optional[int] = None

    # Huecos de datos: False = se omiten en silencio, True = la corrida falla
    strict_data_gaps: bool = False

    weights: FitnessWeights = field(default_factory=FitnessWeights)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GAConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k in merged:
                merged[k] = v
        weights = merged.pop("weights") or {}
        if not isinstance(weights, dict):
            raise ConfigError("'weights' debe ser un mapeo")
        known = {f.name for f in fields(FitnessWeights)}
        w = FitnessWeights(**{k: float(v) for k, v in weights.items() if k in known})
        return cls(weights=w, **merged)

    def validate(self) -> "GAConfig":
        for name in ("crossover_rate", "mutation_rate", "elite_fraction",
                     "tournament_fraction", "gene_mutation_rate", "target_fitness"):
            val = getattr(self, name)
            if not 0.0 <= float(val) <= 1.0:
                raise ConfigError(f"{name} debe estar en [0, 1]: {val!r}")
        if self.selection_method not in SELECTION_METHODS:
            raise ConfigError(f"Método de selección desconocido: {self.selection_method!r}")
        if self.log_every < 1:
            raise ConfigError("log_every debe ser >= 1")
        return self


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"No se pudo leer {path}: {exc}") from exc


def load_config(path: str = "config.yaml") -> GAConfig:
    cfg_path = Path(path)
    data = _load_yaml(cfg_path)
    if not isinstance(data, dict):
        raise ConfigError("config.yaml debe contener un objeto mapeo")
    return GAConfig.from_dict(data).validate()
