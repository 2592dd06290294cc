from .municipio_models import Municipio
from .uf_models import UF

__all__ = [
    'Municipio',
    'UF',
]
