"""Master inventory and view declarations."""
from .inventory import MasterInventory

__all__ = ["MasterInventory"]
