"""
Small building blocks shared by the transport: event sources, the fault slot and value object mixins.
"""
