"""
Hospital Sources Package

External sources consulted when a patient is not yet in the local store.

Available Sources:
- HospitalAPISource: the hospital's HTTP patient API
- MockHospitalSource: canned patient record for local development

All sources implement the BaseHospitalSource interface.
"""

from .base_provider import BaseHospitalSource, ProviderConfig
from .hospital_api import HospitalAPISource, HospitalAPISourceConfig
from .mock_hospital import MockHospitalSource

__all__ = [
    # Base classes
    'BaseHospitalSource',
    'ProviderConfig',

    # Source implementations
    'HospitalAPISource',
    'HospitalAPISourceConfig',
    'MockHospitalSource',
]

# Provider registry for dynamic loading
PROVIDER_REGISTRY = {
    'hospital': HospitalAPISource,
    'mock': MockHospitalSource,
}


def get_provider_class(provider_name: str):
    """
    Get source class by name

    Args:
        provider_name: Name of the source ('hospital', 'mock')

    Returns:
        Source class

    Raises:
        ValueError: If provider name is not recognized
    """
    provider_name = provider_name.lower()

    if provider_name not in PROVIDER_REGISTRY:
        available = ', '.join(PROVIDER_REGISTRY.keys())
        raise ValueError(f"Unknown provider '{provider_name}'. Available providers: {available}")

    return PROVIDER_REGISTRY[provider_name]


def create_provider(provider_name: str, config=None, **kwargs) -> BaseHospitalSource:
    """
    Create source instance by name

    Args:
        provider_name: Name of the source
        config: Source-specific configuration object
        **kwargs: Additional arguments passed to the source constructor

    Returns:
        Source instance
    """
    provider_class = get_provider_class(provider_name)
    return provider_class(config=config, **kwargs)
