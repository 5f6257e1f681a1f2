"""Compartmental model variants behind one CompartmentModel interface."""
from __future__ import annotations
from enum import Enum
from typing import Union

from .base import CompartmentModel, PropensitySet, change_vectors
from .macroparasite import HostMacroparasiteModel
from .seir import SEIRModel
from .sibr import SIBRModel
from .sir import SIRDemographyModel, SIRModel


class ModelKind(Enum):
    """Available model structures"""
    SIR = "sir"
    SIR_DEMOGRAPHY = "sir-demography"
    SEIR = "seir"
    SIBR = "sibr"
    HOST_MACROPARASITE = "host-macroparasite"


_REGISTRY = {
    ModelKind.SIR: SIRModel,
    ModelKind.SIR_DEMOGRAPHY: SIRDemographyModel,
    ModelKind.SEIR: SEIRModel,
    ModelKind.SIBR: SIBRModel,
    ModelKind.HOST_MACROPARASITE: HostMacroparasiteModel,
}


def build_model(kind: Union[ModelKind, str], **kwargs) -> CompartmentModel:
    """
    Instantiate a model by kind.

    Example:
    build_model("sibr", N=763)
    """
    kind = ModelKind(kind)
    return _REGISTRY[kind](**kwargs)


__all__ = [
    "CompartmentModel",
    "PropensitySet",
    "change_vectors",
    "ModelKind",
    "build_model",
    "SIRModel",
    "SIRDemographyModel",
    "SEIRModel",
    "SIBRModel",
    "HostMacroparasiteModel",
]
