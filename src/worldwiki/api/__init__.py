"""API module."""

from .gateway import GatewayResult, GenerationGateway
from .identity import HeaderIdentityVerifier, IdentityVerifier, client_ip
