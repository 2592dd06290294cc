from .emitente_models import Emitente, TipoEmitente, AmbienteSefaz
from .veiculo_models import Veiculo, TipoRodado, TipoCarroceria
from .condutor_models import Condutor
from .reboque_models import Reboque
from .contratante_models import Contratante
from .seguradora_models import Seguradora

__all__ = [
    "Emitente",
    "TipoEmitente",
    "AmbienteSefaz",
    "Veiculo",
    "TipoRodado",
    "TipoCarroceria",
    "Condutor",
    "Reboque",
    "Contratante",
    "Seguradora",
]
