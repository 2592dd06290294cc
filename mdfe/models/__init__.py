from .documentos_models import (
    MdfeDocumentoFiscal,
    MdfeLacreRodoviario,
    MdfeMunicipioDescarga,
    MdfeProdutoPerigoso,
    MdfeUnidadeCarga,
    MdfeUnidadeTransporte,
    TipoDocumentoFiscal,
    TipoUnidadeCarga,
    TipoUnidadeTransporte,
)
from .evento_models import MdfeEvento, TipoEventoMdfe
from .mdfe_models import (
    Mdfe,
    MdfeCondutorAdicional,
    MdfeLocal,
    MdfeReboque,
    MdfeStatus,
    TipoLocal,
    TipoPagamento,
    TipoResponsavelSeguro,
    TipoTransportador,
    UnidadeMedida,
)

__all__ = [
    "Mdfe",
    "MdfeStatus",
    "MdfeReboque",
    "MdfeCondutorAdicional",
    "MdfeLocal",
    "TipoLocal",
    "TipoPagamento",
    "TipoResponsavelSeguro",
    "TipoTransportador",
    "UnidadeMedida",
    "MdfeMunicipioDescarga",
    "MdfeDocumentoFiscal",
    "MdfeUnidadeTransporte",
    "MdfeUnidadeCarga",
    "MdfeProdutoPerigoso",
    "MdfeLacreRodoviario",
    "TipoDocumentoFiscal",
    "TipoUnidadeTransporte",
    "TipoUnidadeCarga",
    "MdfeEvento",
    "TipoEventoMdfe",
]
