from .base_models import BaseModel, RegistroAtivoModel

__all__ = ["BaseModel", "RegistroAtivoModel"]
