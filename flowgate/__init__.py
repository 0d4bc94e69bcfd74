"""Building blocks for a layer 4 TCP and UDP load-balancing proxy."""

__version__ = "0.1.0"