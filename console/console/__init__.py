"""Container-Stats console.

Typer command line and Rich live table consuming monitor subscriptions.
"""

from importlib.metadata import version as get_package_version

__version__ = get_package_version("container-stats")
