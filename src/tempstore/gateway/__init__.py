"""Capability gateway package: single-object access by id, no listing."""

from tempstore.gateway.provider import CapabilityGateway

__all__ = ["CapabilityGateway"]
