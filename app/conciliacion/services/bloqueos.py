"""
Registro de bloqueos por (usuario, periodo)

Una sola corrida de matching automático a la vez para el mismo usuario y
el mismo periodo, sin importar si se pidió por periodo o por estado de
cuenta. Una segunda corrida concurrente no espera: falla de inmediato con
ConciliacionEnCursoError.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Set, Tuple

from app.conciliacion.exceptions import ConciliacionEnCursoError

logger = logging.getLogger(__name__)


class RegistroBloqueos:

    def __init__(self):
        self._mutex = threading.Lock()
        self._activos: Set[Tuple[str, str]] = set()

    def en_curso(self, user_id: str, periodo: str) -> bool:
        with self._mutex:
            return (user_id, periodo) in self._activos

    @contextmanager
    def bloquear(self, user_id: str, *periodos: str) -> Iterator[None]:
        """
        Toma todos los periodos de la corrida o ninguno
        """
        llaves: List[Tuple[str, str]] = [(user_id, p) for p in sorted(set(periodos))]
        with self._mutex:
            for llave in llaves:
                if llave in self._activos:
                    logger.warning(f"⚠️ Conciliación en curso para {user_id} ({llave[1]})")
                    raise ConciliacionEnCursoError(user_id, llave[1])
            self._activos.update(llaves)
        try:
            yield
        finally:
            with self._mutex:
                self._activos.difference_update(llaves)


# Compartido por todas las sesiones del proceso
registro_bloqueos = RegistroBloqueos()
