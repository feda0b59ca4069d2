# app/shared/services/product_locks.py
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterable


class ProductLockRegistry:
    """
    Exclusión mutua por producto dentro del proceso.

    Complementa el bloqueo de fila de la base de datos: dos checkouts del mismo
    proceso que tocan el mismo producto se serializan aquí, antes de leer stock.
    Los locks se adquieren en orden de id para evitar interbloqueos.
    """

    def __init__(self):
        self._locks: Dict[int, threading.Lock] = {}
        self._global_lock = threading.Lock()

    def _get_lock(self, product_id: int) -> threading.Lock:
        """Obtiene o crea el lock de un producto"""
        with self._global_lock:
            if product_id not in self._locks:
                self._locks[product_id] = threading.Lock()
            return self._locks[product_id]

    @contextmanager
    def hold(self, product_ids: Iterable[int], timeout: float):
        """
        Mantener los locks de todos los productos indicados.

        Raises:
            TimeoutError: Si algún lock no se obtiene dentro de ``timeout`` segundos
        """
        deadline = time.monotonic() + max(timeout, 0)
        acquired = []
        try:
            for product_id in sorted(set(product_ids)):
                lock = self._get_lock(product_id)
                remaining = max(deadline - time.monotonic(), 0)
                if not lock.acquire(timeout=remaining):
                    raise TimeoutError(f"Producto {product_id} bloqueado por otra venta")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


product_locks = ProductLockRegistry()
