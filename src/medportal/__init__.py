"""medportal: token issuing and rotation service for the healthcare portal."""

__version__ = "0.1.0"
