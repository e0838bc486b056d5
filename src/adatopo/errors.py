"""Exception types raised at the topology manager boundary."""


class TopologyError(Exception):
    """Base class for topology manager errors."""


class CapacityExceeded(TopologyError):
    """Raised when adding an agent would exceed ``max_nodes``."""


class DuplicateAgent(TopologyError):
    """Raised when an agent id is already registered."""


class StrategyUnavailable(TopologyError):
    """Raised when an optimization strategy kind has no registered implementation."""
