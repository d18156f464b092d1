"""Node provisioning: role profiles, resource names and container specs."""

from .naming import (
    LABEL_CHAIN_ID,
    LABEL_NETWORK,
    LABEL_NODE,
    LABEL_ROLE,
    container_name,
    network_labels,
    virtual_network_name,
)
from .provisioner import CONTAINER_ROOT, DEFAULT_IMAGE, NodeProvisioner
from .roles import Api, RoleProfile, profile_for

__all__ = [
    "CONTAINER_ROOT",
    "DEFAULT_IMAGE",
    "LABEL_CHAIN_ID",
    "LABEL_NETWORK",
    "LABEL_NODE",
    "LABEL_ROLE",
    "Api",
    "NodeProvisioner",
    "RoleProfile",
    "container_name",
    "network_labels",
    "profile_for",
    "virtual_network_name",
]
