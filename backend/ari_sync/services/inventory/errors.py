"""Error taxonomy for the inventory & rates engine."""


class InventoryError(Exception):
    """Base class for all inventory engine errors."""


class ConfigurationError(InventoryError):
    """The tenant has no channel-manager property mapped; nothing was attempted."""


class GridLoadError(InventoryError):
    """The remote ARI snapshot could not be loaded. The previous grid is still in place."""


class PushError(InventoryError):
    """A whole upstream batch was rejected at the transport level."""

    def __init__(self, batch: str, message: str):
        super().__init__(f"{batch} batch failed: {message}")
        self.batch = batch
        self.message = message
