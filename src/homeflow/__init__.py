"""HomeFlow — lifecycle planning for small residential builds."""

__version__ = "0.1.0"
