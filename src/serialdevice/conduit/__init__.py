"""
The conduit package wraps the physical serial port as a line-oriented channel.
Conduits are owned by the worker; nothing else reads or writes them.
"""
