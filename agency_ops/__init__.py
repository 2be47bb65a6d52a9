"""Agency operations API: clients, tasks, finances, team and works."""

__version__ = '0.1.0'
