"""Storage interfaces and implementations for ehrmap."""

from ehrmap.storage.base import PatientStore, RegistryStore
from ehrmap.storage.memory import InMemoryPatientStore

__all__ = [
    "InMemoryPatientStore",
    "PatientStore",
    "RegistryStore",
]
