from .catalog import CONFIG_SUFFIX, DEFAULT_DEPENDENCIES, DEFAULT_MODULES, INTERFACE_OBJECTS
from .dependency_graph import DependencyGraph, GraphValidation

__all__ = [
    "CONFIG_SUFFIX",
    "DEFAULT_DEPENDENCIES",
    "DEFAULT_MODULES",
    "INTERFACE_OBJECTS",
    "DependencyGraph",
    "GraphValidation",
]
