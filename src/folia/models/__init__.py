"""SQLModel database models for Folia."""

from folia.models.nodes import ROOT_KEY, Node, NodeBase, NodeType, parent_key_for
from folia.models.shares import AccessLevel, ShareLink, ShareLinkBase, new_share_token

__all__ = [
    "ROOT_KEY",
    "AccessLevel",
    "Node",
    "NodeBase",
    "NodeType",
    "ShareLink",
    "ShareLinkBase",
    "new_share_token",
    "parent_key_for",
]
