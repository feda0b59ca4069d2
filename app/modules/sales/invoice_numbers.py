import random
from datetime import datetime
from typing import Optional

INVOICE_PREFIX = "FAC"


def generate_invoice_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
    """
    Número de factura visible: FAC-YYYYMMDD-NNN.

    El sufijo es aleatorio en [0, 999], así que dos ventas del mismo día pueden
    repetir número. Es solo una etiqueta; la venta se identifica por su id.
    """
    now = now or datetime.now()
    rng = rng or random
    return f"{INVOICE_PREFIX}-{now:%Y%m%d}-{rng.randint(0, 999):03d}"
