"""app-bundler.

Packages a built executable and the dynamic libraries it needs into a
self-contained "generic" bundle directory for Linux or Windows.
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
