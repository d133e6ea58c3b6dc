"""
Jerarquía de errores del motor de horarios.

Todos los errores son terminales para la corrida: no hay reintentos, la
corrida queda en estado "failed" y el llamador debe enviar una nueva.
"""


class TimetableError(Exception):
    """Base de todos los errores del paquete."""


class ConfigError(TimetableError):
    """Parámetros de corrida o de configuración inválidos."""


class SnapshotError(TimetableError):
    """Un id usado por un gen no existe en la instantánea del dominio."""


class DataLoadError(TimetableError):
    """Los CSV de entrada no tienen el formato esperado."""


class DataGapError(TimetableError):
    def __init__(self, gaps):
        self.gaps = list(gaps)
        super().__init__(f"{len(self.gaps)} huecos de datos en modo estricto")


class RunNotFoundError(TimetableError):
    pass


class RunStateError(TimetableError):
    """Transición de estado no permitida para una corrida."""
