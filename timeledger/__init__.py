"""timeledger - client/project/task time tracking core"""

__version__ = "0.1.0"
