"""Anonymous page capture over Tor with circuit rotation and bounded retries."""

__version__ = "1.0.0"
