"""
Small building blocks shared by the device, the worker and the watchdog:
background loops, event sources, retry policies and value-object helpers.
"""
